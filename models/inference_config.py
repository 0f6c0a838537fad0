"""Immutable configuration for the inference layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class InferenceConfig:
    """Model ids, endpoints, and limits shared by every pipeline.

    Attributes:
        api_base: Base URL for the model endpoints (with trailing slash).
        generate_model: Conversational/analysis model id.
        predict_model: Dedicated image-generation model id.
        max_image_dimension: Longest edge allowed for uploaded images.
        jpeg_quality: Pillow JPEG quality used when re-encoding uploads.
        generate_retry_budget: Default retries for `generate` calls.
        predict_retry_budget: Default retries for `predict` calls.
        backoff_base_ms: First backoff delay after a rate-limit response.
        request_timeout: Seconds before an HTTP request is abandoned.
        fallback_image_url: Public image-synthesis service (prompt is appended).
        fallback_image_size: Width and height requested from the fallback service.
        use_predict_endpoint: Try the predict model before the fallback service.
        analysis_excerpt_chars: Analysis characters sent to the spirit prompt.
        prompt_fallback_chars: Analysis characters used when no prompt is derived.
        default_subject_name: Display name used when the user gives none.
        default_spirit_name: Spirit name used when none can be parsed.
    """

    api_base: str = "https://generativelanguage.googleapis.com/v1beta/models/"
    generate_model: str = "gemini-2.5-flash-preview-09-2025"
    predict_model: str = "imagen-4.0-fast-generate-001"
    max_image_dimension: int = 1600
    jpeg_quality: int = 80
    generate_retry_budget: int = 2
    predict_retry_budget: int = 0
    backoff_base_ms: int = 2000
    request_timeout: float = 60.0
    fallback_image_url: str = "https://image.pollinations.ai/prompt/"
    fallback_image_size: int = 1024
    use_predict_endpoint: bool = False
    analysis_excerpt_chars: int = 1000
    prompt_fallback_chars: int = 200
    default_subject_name: str = "you"
    default_spirit_name: str = "Spirit"

    def model_for(self, endpoint_kind: str) -> str:
        """Return the model id serving the given endpoint kind."""
        return self.predict_model if endpoint_kind == "predict" else self.generate_model

    def retry_budget_for(self, endpoint_kind: str) -> int:
        """Return the default retry budget for the given endpoint kind."""
        return self.predict_retry_budget if endpoint_kind == "predict" else self.generate_retry_budget

    @classmethod
    def from_env(cls, prefix: str = "PALM_") -> "InferenceConfig":
        """Build a config from environment overrides, falling back to defaults."""
        defaults = cls()
        api_base: Optional[str] = os.getenv(f"{prefix}API_BASE")
        if api_base and not api_base.endswith("/"):
            api_base += "/"
        return cls(
            api_base=api_base or defaults.api_base,
            generate_model=os.getenv(f"{prefix}GENERATE_MODEL") or defaults.generate_model,
            predict_model=os.getenv(f"{prefix}PREDICT_MODEL") or defaults.predict_model,
            max_image_dimension=_env_int(f"{prefix}MAX_IMAGE_DIMENSION", defaults.max_image_dimension),
            jpeg_quality=_env_int(f"{prefix}JPEG_QUALITY", defaults.jpeg_quality),
            generate_retry_budget=_env_int(f"{prefix}GENERATE_RETRIES", defaults.generate_retry_budget),
            predict_retry_budget=_env_int(f"{prefix}PREDICT_RETRIES", defaults.predict_retry_budget),
            backoff_base_ms=_env_int(f"{prefix}BACKOFF_BASE_MS", defaults.backoff_base_ms),
            fallback_image_url=os.getenv(f"{prefix}FALLBACK_IMAGE_URL") or defaults.fallback_image_url,
            use_predict_endpoint=_env_bool(f"{prefix}USE_PREDICT", defaults.use_predict_endpoint),
        )
