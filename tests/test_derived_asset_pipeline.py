import base64
from dataclasses import replace
from urllib.parse import unquote

import httpx
import pytest

from fakes import ScriptedTransport, error_response, text_response
from models.reading_models import AnalysisResult, SpiritStatus
from services.derived_asset_pipeline import DerivedAssetPipeline, parse_spirit_description
from services.gemini.errors import FallbackImageError, QuotaExhaustedError

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
ANALYSIS = AnalysisResult(text="R" * 1500, subject_name="Alice")


def _router(description: str, image_status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "images.test":
            return httpx.Response(image_status, content=PNG_BYTES, headers={"content-type": "image/png"})
        return text_response(description)

    return handler


def test_parse_splits_prompt_and_name():
    assert parse_spirit_description("A silver fox of moonlight (Tsukiyo)", "Spirit") == (
        "A silver fox of moonlight",
        "Tsukiyo",
    )


def test_parse_without_parenthetical_uses_default_name():
    prompt, name = parse_spirit_description("A phoenix wreathed in flame", "Spirit")
    assert prompt == "A phoenix wreathed in flame"
    assert name == "Spirit"


def test_parse_uses_first_parenthetical_only():
    prompt, name = parse_spirit_description("Owl (Sage) guarding (Dreams)", "Spirit")
    assert prompt == "Owl"
    assert name == "Sage"


async def test_summon_returns_done_record_with_data_url(make_invoker):
    transport = ScriptedTransport(handler=_router("A guardian dragon of jade (Ryokuryu)"))
    pipeline = DerivedAssetPipeline(make_invoker(transport))

    record = await pipeline.summon(ANALYSIS)

    assert record.status is SpiritStatus.DONE
    assert record.caption == "Summoned spirit: Ryokuryu"
    assert record.image_data == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("utf-8")

    describe_request, image_request = transport.requests
    assert "R" * 1000 in describe_request.content.decode("utf-8")
    assert "R" * 1001 not in describe_request.content.decode("utf-8")
    assert image_request.method == "GET"
    assert "A guardian dragon of jade" in unquote(image_request.url.path)
    assert image_request.url.params["nologo"] == "true"
    assert image_request.url.params["width"] == "1024"
    assert image_request.url.params["seed"].isdigit()


async def test_summon_without_parenthetical_uses_default_name(make_invoker, config):
    transport = ScriptedTransport(handler=_router("A luminous stag in the forest"))
    pipeline = DerivedAssetPipeline(make_invoker(transport))

    record = await pipeline.summon(ANALYSIS)

    assert record.caption == f"Summoned spirit: {config.default_spirit_name}"


async def test_empty_prompt_falls_back_to_analysis_excerpt(make_invoker):
    analysis = AnalysisResult(text="Palm text " * 40, subject_name="Bob")
    transport = ScriptedTransport(handler=_router("(Nameless)"))
    pipeline = DerivedAssetPipeline(make_invoker(transport))

    await pipeline.summon(analysis)

    image_path = unquote(transport.requests[1].url.path)
    assert analysis.text[:200] in image_path
    assert analysis.text[:201] not in image_path


async def test_fallback_failure_raises(make_invoker):
    transport = ScriptedTransport(handler=_router("A koi (Koi)", image_status=500))
    pipeline = DerivedAssetPipeline(make_invoker(transport))

    with pytest.raises(FallbackImageError):
        await pipeline.summon(ANALYSIS)


async def test_description_quota_error_propagates(make_invoker):
    transport = ScriptedTransport([error_response(403, "Quota exceeded")])
    pipeline = DerivedAssetPipeline(make_invoker(transport))

    with pytest.raises(QuotaExhaustedError):
        await pipeline.summon(ANALYSIS)
    assert len(transport.requests) == 1


async def test_predict_endpoint_used_when_enabled(make_invoker, config):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(":predict"):
            return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": "QUJD", "mimeType": "image/png"}]})
        return text_response("A crane (Tsuru)")

    transport = ScriptedTransport(handler=handler)
    pipeline = DerivedAssetPipeline(make_invoker(transport, cfg=replace(config, use_predict_endpoint=True)))

    record = await pipeline.summon(ANALYSIS)

    assert record.image_data == "data:image/png;base64,QUJD"
    assert all(r.url.host != "images.test" for r in transport.requests)


async def test_predict_billing_error_falls_back_to_image_service(make_invoker, config, sleep):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(":predict"):
            return error_response(400, "Imagen API is only accessible to billed users at this time.")
        if request.url.host == "images.test":
            return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
        return text_response("A crane (Tsuru)")

    transport = ScriptedTransport(handler=handler)
    pipeline = DerivedAssetPipeline(make_invoker(transport, cfg=replace(config, use_predict_endpoint=True)))

    record = await pipeline.summon(ANALYSIS)

    assert record.status is SpiritStatus.DONE
    assert [r.url.host for r in transport.requests][-1] == "images.test"
    assert sleep.delays == []
