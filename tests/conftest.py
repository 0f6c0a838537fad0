import httpx
import pytest

from fakes import ScriptedTransport, SleepRecorder
from models.inference_config import InferenceConfig
from services.gemini.resilient_invoker import ResilientInvoker


@pytest.fixture
def config() -> InferenceConfig:
    return InferenceConfig(
        api_base="https://inference.test/v1beta/models/",
        fallback_image_url="https://images.test/prompt/",
    )


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_invoker(config, sleep):
    """Build invokers whose HTTP traffic is served by a ScriptedTransport."""

    def _make(transport: ScriptedTransport, api_key: str = "test-key", cfg: InferenceConfig | None = None) -> ResilientInvoker:
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        return ResilientInvoker(client, cfg or config, api_key, sleep=sleep)

    return _make
