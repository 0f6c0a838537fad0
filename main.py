import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controllers.workflow_controller import WorkflowController
from models.inference_config import InferenceConfig
from routes.workflow_route import router as workflow_router
from services.gemini.resilient_invoker import ResilientInvoker

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present


def read_api_key() -> str:
    """Return the configured API key, or an empty string when none is set."""
    return (os.getenv("GOOGLE_API_KEY") or os.getenv("VITE_GOOGLE_API_KEY") or "").strip()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the immutable inference configuration
      - the shared httpx async client and resilient invoker
      - the single in-process workflow controller
    and attach them to `app.state`.
    """
    config = InferenceConfig.from_env()

    # The credential is read once here and injected; a missing key is reported
    # by /health and makes every pipeline call fail fast.
    api_key = read_api_key()
    if not api_key:
        logging.warning("GOOGLE_API_KEY is not set; inference calls will fail until it is configured.")

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(config.request_timeout))
    invoker = ResilientInvoker(http_client, config, api_key)

    app.state.config = config
    app.state.http_client = http_client
    app.state.invoker = invoker
    app.state.workflow = WorkflowController(invoker, config)

    try:
        yield
    finally:
        await http_client.aclose()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports whether the invoker has a credential.
        """
        invoker = getattr(request.app.state, "invoker", None)
        return {
            "ok": True,
            "credential_configured": bool(invoker is not None and invoker.has_credential),
        }

    app.include_router(workflow_router)

    return app


app = create_app()
