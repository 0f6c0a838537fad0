import importlib
import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from controllers.workflow_controller import WorkflowController
from fakes import ScriptedTransport, error_response, image_bytes, text_response
import main
from main import create_app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "route-key")
    with TestClient(create_app()) as test_client:
        yield test_client


def _install(client, make_invoker, transport) -> WorkflowController:
    workflow = WorkflowController(make_invoker(transport))
    client.app.state.workflow = workflow
    return workflow


def _upload(client, data=None, content_type="image/jpeg"):
    files = {"image": ("palm.jpg", data if data is not None else image_bytes(400, 300), content_type)}
    return client.post("/workflow/image", files=files)


def test_health_reports_credential(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "credential_configured": True}


def test_initial_status(client):
    body = client.get("/workflow").json()
    assert body["view"] == "input"
    assert body["chat"][0]["sender"] == "system"
    assert body["spirit"]["status"] == "idle"


def test_full_flow(client, make_invoker):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "images.test":
            return httpx.Response(200, content=b"img", headers={"content-type": "image/jpeg"})
        if b"guardian spirit" in request.content:
            return text_response("A jade dragon (Seiryu)")
        if b"Question:" in request.content:
            return text_response("Yes, soon.")
        return text_response("# Reading for Alice")

    _install(client, make_invoker, ScriptedTransport(handler=handler))

    assert _upload(client).json()["has_image"] is True

    body = client.post("/workflow/analysis", json={"subject_name": "Alice"}).json()
    assert body["view"] == "result"
    assert body["analysis_markdown"] == "# Reading for Alice"

    body = client.post("/workflow/spirit").json()
    assert body["spirit"]["status"] == "done"
    assert body["spirit"]["caption"] == "Summoned spirit: Seiryu"

    body = client.post("/workflow/chat", json={"question": "Will I travel?"}).json()
    assert [m["text"] for m in body["chat"]][-2:] == ["Will I travel?", "Yes, soon."]

    body = client.post("/workflow/reset").json()
    assert body["view"] == "input"
    assert body["has_image"] is False
    assert len(body["chat"]) == 1


def test_non_image_upload_is_rejected(client, make_invoker):
    _install(client, make_invoker, ScriptedTransport([]))
    response = _upload(client, data=b"hello", content_type="text/plain")
    assert response.status_code == 415


def test_analysis_without_image_conflicts(client, make_invoker):
    _install(client, make_invoker, ScriptedTransport([]))
    response = client.post("/workflow/analysis", json={"subject_name": "Alice"})
    assert response.status_code == 409


def test_quota_error_maps_to_429_and_sets_notice(client, make_invoker):
    _install(client, make_invoker, ScriptedTransport([error_response(403, "quota exceeded")]))
    _upload(client)

    response = client.post("/workflow/analysis", json={})
    assert response.status_code == 429

    status = client.get("/workflow").json()
    assert status["view"] == "input"
    assert status["quota_notice"] is True

    status = client.post("/workflow/quota-notice/dismiss").json()
    assert status["quota_notice"] is False


def test_generic_error_maps_to_502(client, make_invoker):
    _install(client, make_invoker, ScriptedTransport([error_response(500, "Internal error")]))
    _upload(client)

    response = client.post("/workflow/analysis", json={"subject_name": "Bob"})
    assert response.status_code == 502
    assert response.json()["detail"] == "Internal error"


def test_importing_app_leaves_root_logger_alone(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda *args, **kwargs: calls.append(kwargs))

    importlib.reload(main)

    assert calls == []
