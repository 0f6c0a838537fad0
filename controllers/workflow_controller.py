"""State machine coordinating the reading, spirit, and chat pipelines."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import BinaryIO, List, Optional, Union

from models.image_asset import ImageAsset
from models.inference_config import InferenceConfig
from models.reading_models import (
    AnalysisResult,
    ChatMessage,
    SpiritRecord,
    SpiritStatus,
    WorkflowStatus,
    WorkflowView,
)
from services.analysis_pipeline import AnalysisPipeline
from services.chat_session import ChatSession, initial_transcript
from services.derived_asset_pipeline import DerivedAssetPipeline
from services.gemini.errors import InvocationError
from services.gemini.resilient_invoker import ResilientInvoker
from services.image_preprocessor import ImagePreprocessor

UNEXPECTED_NOTICE = "Something went wrong. Please try again."


class WorkflowStateError(Exception):
    """The requested action is not allowed in the current workflow state."""


class ChatBusyError(WorkflowStateError):
    """A chat question is already awaiting its answer."""


class WorkflowController:
    """Own the session entities and move the workflow between INPUT, LOADING and RESULT.

    Only this controller mutates the AnalysisResult, SpiritRecord and chat
    transcript. Each async action captures the run generation when it starts
    and drops its result if `reset()` ran while it was awaiting.

    Args:
        invoker: Shared resilient invoker.
        config: Inference configuration; defaults to the invoker's.
        preprocessor: Optional ImagePreprocessor override.
        analysis_pipeline: Optional AnalysisPipeline override.
        derived_pipeline: Optional DerivedAssetPipeline override.
        chat_session: Optional ChatSession override.
    """

    def __init__(
        self,
        invoker: ResilientInvoker,
        config: Optional[InferenceConfig] = None,
        *,
        preprocessor: Optional[ImagePreprocessor] = None,
        analysis_pipeline: Optional[AnalysisPipeline] = None,
        derived_pipeline: Optional[DerivedAssetPipeline] = None,
        chat_session: Optional[ChatSession] = None,
    ) -> None:
        self.config = config or invoker.config
        self.preprocessor = preprocessor or ImagePreprocessor(
            max_dimension=self.config.max_image_dimension, quality=self.config.jpeg_quality
        )
        self.analysis_pipeline = analysis_pipeline or AnalysisPipeline(invoker, self.config)
        self.derived_pipeline = derived_pipeline or DerivedAssetPipeline(invoker, config=self.config)
        self.chat_session = chat_session or ChatSession(invoker)
        self._generation = 0
        self._clear()

    def _clear(self) -> None:
        self.view = WorkflowView.INPUT
        self.image: Optional[ImageAsset] = None
        self.subject_name = ""
        self.analysis: Optional[AnalysisResult] = None
        self.spirit = SpiritRecord.idle()
        self.transcript: List[ChatMessage] = initial_transcript()
        self.chat_pending = False
        self.notice: Optional[str] = None
        self.quota_notice = False

    def _quota_hook(self, generation: int):
        """Return a hook that raises the quota notice unless the run was reset."""

        def _hook() -> None:
            if generation == self._generation:
                self.quota_notice = True

        return _hook

    async def select_image(
        self,
        data: Union[bytes, BinaryIO],
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> ImageAsset:
        """Preprocess and store a new image, replacing any previous one."""
        if self.view is WorkflowView.LOADING:
            raise WorkflowStateError("A reading is already in progress.")
        generation = self._generation
        try:
            asset = await asyncio.to_thread(self.preprocessor.preprocess, data, mime_type, filename)
        except InvocationError as exc:
            if generation == self._generation:
                logging.error("Image processing error: %s", exc)
                self.notice = exc.message
            raise

        if generation != self._generation:
            raise WorkflowStateError("The workflow was reset while the image was being processed.")
        if self.view is WorkflowView.LOADING:
            raise WorkflowStateError("A reading started while the image was being processed.")
        self.image = asset
        return asset

    async def start(self, subject_name: Optional[str] = None) -> AnalysisResult:
        """Run the reading: INPUT -> LOADING -> RESULT, or back to INPUT on failure."""
        if self.image is None:
            raise WorkflowStateError("Upload a palm image first.")
        if self.view is not WorkflowView.INPUT:
            raise WorkflowStateError(f"Cannot start a reading while in {self.view.value}.")

        generation = self._generation
        self.subject_name = (subject_name or "").strip()
        self.analysis = None
        self.notice = None
        self.view = WorkflowView.LOADING

        try:
            result = await self.analysis_pipeline.analyze(
                self.image, self.subject_name, on_quota_exhausted=self._quota_hook(generation)
            )
        except Exception as exc:
            if generation == self._generation:
                logging.error("Analysis error: %s", exc)
                self.analysis = None
                self.notice = exc.message if isinstance(exc, InvocationError) else UNEXPECTED_NOTICE
                self.view = WorkflowView.INPUT
            raise

        if generation != self._generation:
            raise WorkflowStateError("The workflow was reset before the reading finished.")
        self.analysis = result
        self.spirit = SpiritRecord.idle()
        self.view = WorkflowView.RESULT
        return result

    async def summon_spirit(self) -> SpiritRecord:
        """Generate the guardian spirit: idle/done -> loading -> done, or back to idle."""
        if self.view is not WorkflowView.RESULT or self.analysis is None:
            raise WorkflowStateError("Finish the reading first.")
        if self.spirit.status is SpiritStatus.LOADING:
            raise WorkflowStateError("A spirit is already being summoned.")

        generation = self._generation
        self.spirit = SpiritRecord(status=SpiritStatus.LOADING)
        try:
            record = await self.derived_pipeline.summon(self.analysis, on_quota_exhausted=self._quota_hook(generation))
        except Exception as exc:
            if generation == self._generation:
                logging.error("Summon error: %s", exc)
                self.notice = exc.message if isinstance(exc, InvocationError) else UNEXPECTED_NOTICE
                self.spirit = SpiritRecord.idle()
            raise

        if generation != self._generation:
            raise WorkflowStateError("The workflow was reset before the spirit arrived.")
        self.spirit = record
        return record

    async def ask(self, question: str) -> List[ChatMessage]:
        """Ask a follow-up question; only one may be outstanding at a time."""
        if self.chat_pending:
            raise ChatBusyError("Wait for the current answer before asking again.")
        if self.analysis is None or not (question or "").strip():
            return self.transcript

        generation = self._generation
        transcript = self.transcript
        self.chat_pending = True
        try:
            await self.chat_session.ask(
                transcript, self.analysis, question, on_quota_exhausted=self._quota_hook(generation)
            )
        finally:
            if generation == self._generation:
                self.chat_pending = False
        return self.transcript

    def dismiss_quota_notice(self) -> None:
        self.quota_notice = False

    def reset(self) -> None:
        """Clear every entity and return to INPUT from any state."""
        self._generation += 1
        self._clear()

    def status(self) -> WorkflowStatus:
        """Return a read-only snapshot of the current state."""
        return WorkflowStatus(
            view=self.view,
            subject_name=self.subject_name or self.config.default_subject_name,
            has_image=self.image is not None,
            image_width=self.image.width if self.image else None,
            image_height=self.image.height if self.image else None,
            analysis_text=self.analysis.text if self.analysis else None,
            spirit=replace(self.spirit),
            transcript=tuple(self.transcript),
            chat_pending=self.chat_pending,
            notice=self.notice,
            quota_notice=self.quota_notice,
        )
