"""Palm reading request built on the resilient generate endpoint."""

import logging
import time
from typing import Optional

from models.image_asset import ImageAsset
from models.inference_config import InferenceConfig
from models.invocation import EndpointKind
from models.reading_models import AnalysisResult
from services.gemini.errors import EmptyResultError
from services.gemini.media_inputs import build_contents, image_part, text_part
from services.gemini.prompts import reading_prompt
from services.gemini.resilient_invoker import QuotaHook, ResilientInvoker
from services.gemini.response_parser import extract_text


class AnalysisPipeline:
    """Send the uploaded palm image with the report template and return the reading."""

    def __init__(self, invoker: ResilientInvoker, config: Optional[InferenceConfig] = None) -> None:
        if invoker is None:
            raise ValueError("ResilientInvoker is required.")
        self.invoker = invoker
        self.config = config or invoker.config

    def display_name(self, subject_name: Optional[str]) -> str:
        return (subject_name or "").strip() or self.config.default_subject_name

    async def analyze(
        self,
        image: ImageAsset,
        subject_name: Optional[str],
        *,
        on_quota_exhausted: QuotaHook = None,
    ) -> AnalysisResult:
        """Run the analysis request for one image.

        Args:
            image: Preprocessed image asset.
            subject_name: Name to address in the report; blank uses the default.
            on_quota_exhausted: Hook forwarded to the invoker.

        Returns:
            The AnalysisResult holding the markdown reading.

        Raises:
            EmptyResultError: The response held no text.
            InvocationError: Any terminal invocation failure.
        """
        start = time.time()
        name = self.display_name(subject_name)
        payload = build_contents([text_part(reading_prompt(name)), image_part(image)])
        request = self.invoker.build_request(payload, EndpointKind.GENERATE)

        response = await self.invoker.invoke(request, on_quota_exhausted=on_quota_exhausted)

        text = extract_text(response)
        if not text.strip():
            logging.error("Analysis response contained no text.")
            raise EmptyResultError("The reading could not be produced.")

        logging.info(f"Palm reading latency: {time.time() - start:.3f}s")
        return AnalysisResult(text=text, subject_name=name)
