"""Tests for the HTTP surface (scripted capability, no network)."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from photopoet.api.sessions import get_session_store
from photopoet.core.settings import settings
from photopoet.main import app
from photopoet.services.controller import InteractionController
from photopoet.services.sessions import SessionStore
from tests.conftest import CAT_ANALYSIS, CAT_POEM, FakeCapability, png_bytes


@pytest.fixture
def fake():
    return FakeCapability()


@pytest.fixture
def client(fake):
    store = SessionStore(max_sessions=10, controller_factory=lambda: InteractionController(capability=fake, timeout=5))
    app.dependency_overrides[get_session_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _session(client) -> str:
    resp = client.post("/api/v1/sessions")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["state"]["phase"] == "idle"
    return data["session_id"]


def _upload(client, sid, raw=None):
    raw = raw if raw is not None else png_bytes((8, 8))
    return client.post(f"/api/v1/sessions/{sid}/photo", files={"image": ("p.png", raw, "image/png")})


def test_index_page(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Photo Poet" in resp.text


def test_health(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "backend" in data["ai"]
    assert data["sessions"]["live"] == 0


def test_full_round_trip(client, fake):
    fake.responses.extend([CAT_ANALYSIS, CAT_POEM])
    sid = _session(client)

    resp = _upload(client, sid)
    assert resp.status_code == 200
    assert resp.json()["state"]["photo"].startswith("data:image/png;base64,")

    resp = client.post(f"/api/v1/sessions/{sid}/analyze")
    assert resp.status_code == 200
    state = resp.json()["state"]
    assert state["phase"] == "analyzed"
    assert state["analysis"] == CAT_ANALYSIS
    assert state["tags"] == ["cat"]

    resp = client.post(f"/api/v1/sessions/{sid}/generate")
    assert resp.status_code == 200
    state = resp.json()["state"]
    assert state["phase"] == "generated"
    assert state["poem"] == CAT_POEM["poem"]

    state = client.get(f"/api/v1/sessions/{sid}").json()["state"]
    assert state["phase"] == "generated"

    state = client.delete(f"/api/v1/sessions/{sid}/photo").json()["state"]
    assert state["phase"] == "idle"
    assert state["photo"] is None and state["analysis"] is None and state["poem"] is None


def test_set_photo_by_url(client):
    sid = _session(client)
    resp = client.put(f"/api/v1/sessions/{sid}/photo", json={"photo_url": "https://example.com/cat.jpg"})
    assert resp.status_code == 200
    assert resp.json()["state"]["photo"] == "https://example.com/cat.jpg"


def test_set_photo_rejects_non_image_reference(client):
    sid = _session(client)
    resp = client.put(f"/api/v1/sessions/{sid}/photo", json={"photo_url": "ftp://example.com/cat.jpg"})
    assert resp.status_code == 422
    assert resp.json()["ok"] is False


def test_analyze_without_photo(client):
    sid = _session(client)
    resp = client.post(f"/api/v1/sessions/{sid}/analyze")
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"] == "Please upload a photo first."
    assert data["state"]["phase"] == "idle"


def test_generate_before_analyze(client):
    sid = _session(client)
    _upload(client, sid)
    resp = client.post(f"/api/v1/sessions/{sid}/generate")
    assert resp.status_code == 409
    data = resp.json()
    assert data["error"] == "Please analyze the photo first."
    assert data["state"]["phase"] == "idle"


def test_failed_analysis_reports_message(client, fake):
    fake.responses.append(RuntimeError("backend down"))
    sid = _session(client)
    _upload(client, sid)
    resp = client.post(f"/api/v1/sessions/{sid}/analyze")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is False
    assert data["error"] == "Error analyzing photo. Please try again."
    assert data["state"]["phase"] == "idle"


def test_unreadable_upload(client):
    sid = _session(client)
    resp = _upload(client, sid, raw=b"not an image")
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"] == "Failed to read file."
    assert data["state"]["error"] == "Failed to read file."


def test_oversized_upload_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    sid = _session(client)
    resp = _upload(client, sid)
    assert resp.status_code == 422
    assert "too large" in resp.json()["error"]
    assert resp.json()["state"]["photo"] is None


def test_upload_without_file(client):
    sid = _session(client)
    resp = client.post(f"/api/v1/sessions/{sid}/photo")
    assert resp.status_code == 422
    assert resp.json()["error"] == "No file selected."


@pytest.mark.parametrize("method,path", [
    ("get", ""),
    ("delete", ""),
    ("delete", "/photo"),
    ("post", "/analyze"),
    ("post", "/generate"),
])
def test_unknown_session(client, method, path):
    resp = getattr(client, method)(f"/api/v1/sessions/nope{path}")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False


def test_end_session(client):
    sid = _session(client)
    assert client.delete(f"/api/v1/sessions/{sid}").json() == {"ok": True}
    assert client.get(f"/api/v1/sessions/{sid}").status_code == 404
