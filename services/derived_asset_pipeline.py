"""Guardian spirit generation derived from a completed palm reading.

The first stage asks the generate model to name a symbolic guardian spirit
and write an image prompt for it. The second stage renders that prompt,
optionally through the predict model and otherwise through a public
image-synthesis service, and returns an embeddable data URL.
"""

from __future__ import annotations

import base64
import logging
import re
import time
from typing import Optional, Tuple
from urllib.parse import quote

import httpx

from models.inference_config import InferenceConfig
from models.invocation import EndpointKind
from models.reading_models import AnalysisResult, SpiritRecord, SpiritStatus
from services.gemini.errors import (
    BillingRequiredError,
    FallbackImageError,
    GenericInvocationError,
    NetworkFailure,
    QuotaExhaustedError,
)
from services.gemini.media_inputs import build_contents, build_predict_payload, text_part
from services.gemini.prompts import spirit_prompt, styled_image_prompt
from services.gemini.resilient_invoker import QuotaHook, ResilientInvoker
from services.gemini.response_parser import extract_prediction, extract_text

_NAME_PATTERN = re.compile(r"\((.*?)\)")


def parse_spirit_description(raw: str, default_name: str) -> Tuple[str, str]:
    """Split a description into `(image_prompt, spirit_name)`.

    The prompt is everything before the first "(" (trimmed); the name is
    the content of the first parenthesized group, or `default_name`.
    """
    raw = raw or ""
    prompt = raw.split("(", 1)[0].strip()
    match = _NAME_PATTERN.search(raw)
    name = match.group(1).strip() if match and match.group(1).strip() else default_name
    return prompt, name


def to_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


class DerivedAssetPipeline:
    """Derive a spirit prompt from the reading and render it as an image."""

    def __init__(
        self,
        invoker: ResilientInvoker,
        http_client: Optional[httpx.AsyncClient] = None,
        config: Optional[InferenceConfig] = None,
    ) -> None:
        if invoker is None:
            raise ValueError("ResilientInvoker is required.")
        self.invoker = invoker
        self.http_client = http_client or invoker.client
        self.config = config or invoker.config

    async def summon(self, analysis: AnalysisResult, *, on_quota_exhausted: QuotaHook = None) -> SpiritRecord:
        """Run both stages and return a completed SpiritRecord.

        Raises:
            InvocationError: The description stage failed terminally.
            FallbackImageError: The fallback image service failed.
        """
        start = time.time()
        prompt, name = await self.describe(analysis, on_quota_exhausted=on_quota_exhausted)
        source = prompt or analysis.text[: self.config.prompt_fallback_chars]
        image_data = await self.render(source)
        logging.info(f"Spirit summon latency: {time.time() - start:.3f}s")
        return SpiritRecord(
            status=SpiritStatus.DONE,
            image_data=image_data,
            caption=f"Summoned spirit: {name}",
        )

    async def describe(self, analysis: AnalysisResult, *, on_quota_exhausted: QuotaHook = None) -> Tuple[str, str]:
        """Ask the generate model for an image prompt and spirit name."""
        excerpt = analysis.text[: self.config.analysis_excerpt_chars]
        payload = build_contents([text_part(spirit_prompt(analysis.subject_name, excerpt))])
        request = self.invoker.build_request(payload, EndpointKind.GENERATE)
        response = await self.invoker.invoke(request, on_quota_exhausted=on_quota_exhausted)
        return parse_spirit_description(extract_text(response), self.config.default_spirit_name)

    async def render(self, prompt: str) -> str:
        """Return a data URL for the prompt, preferring the predict model when enabled."""
        if self.config.use_predict_endpoint:
            try:
                rendered = await self._render_with_predict(prompt)
            except (QuotaExhaustedError, BillingRequiredError, GenericInvocationError, NetworkFailure) as exc:
                logging.warning("Predict endpoint unavailable, using fallback image service: %s", exc)
            else:
                if rendered:
                    return rendered
                logging.warning("Predict endpoint returned no image, using fallback image service.")
        return await self.fetch_fallback_image(prompt)

    async def _render_with_predict(self, prompt: str) -> Optional[str]:
        """Render through the predict model; its quota is not surfaced since the fallback follows."""
        request = self.invoker.build_request(
            build_predict_payload(styled_image_prompt(prompt)), EndpointKind.PREDICT
        )
        response = await self.invoker.invoke(request)
        prediction = extract_prediction(response)
        if prediction is None:
            return None
        mime_type, data = prediction
        return f"data:{mime_type};base64,{data}"

    async def fetch_fallback_image(self, prompt: str) -> str:
        """Fetch an image for the prompt from the fallback synthesis service.

        A millisecond timestamp seed keeps the service from serving a cached image.
        """
        size = self.config.fallback_image_size
        url = f"{self.config.fallback_image_url}{quote(styled_image_prompt(prompt), safe='')}"
        params = {
            "width": size,
            "height": size,
            "nologo": "true",
            "seed": int(time.time() * 1000),
        }
        try:
            response = await self.http_client.get(url, params=params)
        except httpx.HTTPError as exc:
            logging.error("Fallback image request failed: %s", exc)
            raise FallbackImageError("The fallback image service could not be reached.") from exc

        if not response.is_success or not response.content:
            logging.error("Fallback image service returned status %s", response.status_code)
            raise FallbackImageError("The fallback image service also failed to generate an image.", response.status_code)

        mime_type = response.headers.get("content-type", "image/jpeg").split(";", 1)[0].strip() or "image/jpeg"
        return to_data_url(response.content, mime_type)
