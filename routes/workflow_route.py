"""FastAPI routes exposing the palm reading workflow to the frontend."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.workflow_controller import WorkflowController, WorkflowStateError
from models.reading_models import WorkflowStatus
from services.gemini.errors import (
    BillingRequiredError,
    EncodingFailure,
    InvalidInput,
    InvocationError,
    MissingCredentialError,
    QuotaExhaustedError,
)
from utils.media_validation import read_image_bytes

router = APIRouter(prefix="/workflow", tags=["workflow"])


class AnalysisPayload(BaseModel):
    subject_name: Optional[str] = None


class ChatPayload(BaseModel):
    question: str


def _get_workflow(request: Request) -> WorkflowController:
    """Retrieve the shared workflow controller from the app state."""
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise HTTPException(status_code=500, detail="Workflow not initialized.")
    return workflow


def serialize_status(status: WorkflowStatus) -> Dict[str, Any]:
    """Convert a WorkflowStatus snapshot into a JSON-ready dict."""
    return {
        "view": status.view.value,
        "subject_name": status.subject_name,
        "has_image": status.has_image,
        "image_width": status.image_width,
        "image_height": status.image_height,
        "analysis_markdown": status.analysis_text,
        "spirit": {
            "status": status.spirit.status.value,
            "image": status.spirit.image_data,
            "caption": status.spirit.caption,
        },
        "chat": [{"sender": msg.sender.value, "text": msg.text} for msg in status.transcript],
        "chat_pending": status.chat_pending,
        "notice": status.notice,
        "quota_notice": status.quota_notice,
    }


def _http_error(exc: Exception) -> HTTPException:
    """Translate workflow and invocation errors into HTTP responses."""
    if isinstance(exc, WorkflowStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=415, detail=exc.message)
    if isinstance(exc, EncodingFailure):
        return HTTPException(status_code=422, detail=exc.message)
    if isinstance(exc, MissingCredentialError):
        return HTTPException(status_code=503, detail=exc.message)
    if isinstance(exc, QuotaExhaustedError):
        return HTTPException(status_code=429, detail=exc.message)
    if isinstance(exc, BillingRequiredError):
        return HTTPException(status_code=402, detail=exc.message)
    if isinstance(exc, InvocationError):
        return HTTPException(status_code=502, detail=exc.message)
    return HTTPException(status_code=500, detail=str(exc))


@router.get("")
async def get_status(request: Request):
    """Return the current workflow snapshot."""
    return serialize_status(_get_workflow(request).status())


@router.post("/image", summary="Upload the palm image")
async def upload_image(request: Request, image: UploadFile = File(...)):
    workflow = _get_workflow(request)
    image_bytes = await read_image_bytes(image)

    try:
        await workflow.select_image(image_bytes, image.content_type, image.filename)
    except (WorkflowStateError, InvocationError) as exc:
        raise _http_error(exc) from exc
    return serialize_status(workflow.status())


@router.post("/analysis", summary="Run the palm reading")
async def start_analysis(request: Request, payload: AnalysisPayload):
    workflow = _get_workflow(request)
    try:
        await workflow.start(payload.subject_name)
    except (WorkflowStateError, InvocationError) as exc:
        raise _http_error(exc) from exc
    return serialize_status(workflow.status())


@router.post("/spirit", summary="Summon the guardian spirit")
async def summon_spirit(request: Request):
    workflow = _get_workflow(request)
    try:
        await workflow.summon_spirit()
    except (WorkflowStateError, InvocationError) as exc:
        raise _http_error(exc) from exc
    return serialize_status(workflow.status())


@router.post("/chat", summary="Ask a follow-up question")
async def ask_question(request: Request, payload: ChatPayload):
    workflow = _get_workflow(request)
    try:
        await workflow.ask(payload.question)
    except WorkflowStateError as exc:
        raise _http_error(exc) from exc
    return serialize_status(workflow.status())


@router.post("/quota-notice/dismiss")
async def dismiss_quota_notice(request: Request):
    workflow = _get_workflow(request)
    workflow.dismiss_quota_notice()
    return serialize_status(workflow.status())


@router.post("/reset")
async def reset_workflow(request: Request):
    workflow = _get_workflow(request)
    workflow.reset()
    return serialize_status(workflow.status())
