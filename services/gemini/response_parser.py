"""Helpers to pull text, images, and error messages out of endpoint responses."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple


def _first(items: Any) -> Any:
    if isinstance(items, list) and items:
        return items[0]
    return None


def extract_text(response: Any) -> str:
    """Return the first text part of the first candidate, or an empty string.

    Bodies that do not have the `candidates[0].content.parts[0].text` shape
    at any level yield an empty string.
    """
    if not isinstance(response, dict):
        return ""
    candidate = _first(response.get("candidates"))
    if not isinstance(candidate, dict):
        return ""
    content = candidate.get("content")
    if not isinstance(content, dict):
        return ""
    part = _first(content.get("parts"))
    if not isinstance(part, dict):
        return ""
    text = part.get("text")
    return text if isinstance(text, str) else ""


def extract_prediction(response: Any) -> Optional[Tuple[str, str]]:
    """Return `(mime_type, base64_data)` from a predict response if present."""
    if not isinstance(response, dict):
        return None
    first = _first(response.get("predictions"))
    if not isinstance(first, dict):
        return None
    data = first.get("bytesBase64Encoded")
    if not data or not isinstance(data, str):
        return None
    mime_type = first.get("mimeType")
    return (mime_type if isinstance(mime_type, str) and mime_type else "image/png"), data


def extract_error_message(body: Any, status: int) -> str:
    """Return `error.message` from a failure body, or a status placeholder."""
    if isinstance(body, dict):
        error: Dict[str, Any] = body.get("error") or {}
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"HTTP {status}"
