from __future__ import annotations

import requests

import enoma_api.notifications as notifications_module
from enoma_api.services.google_places import PlacesError


class _Response:
    def __init__(self, status_code: int = 200, text: str = "{}"):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def test_google_place_returns_result(client, fake_places):
    fake_places.result = {"rating": 4.8, "reviews": [], "opening_hours": {"open_now": True}}

    response = client.get("/api/google-place", params={"place_id": "ChIJ123"})

    assert response.status_code == 200
    assert response.json()["rating"] == 4.8
    assert fake_places.calls == ["ChIJ123"]


def test_google_place_errors(client, fake_places):
    assert client.get("/api/google-place").json() == {"error": "Missing place_id"}

    fake_places.error = PlacesError("NOT_FOUND")
    not_ok = client.get("/api/google-place", params={"place_id": "x"})
    assert not_ok.status_code == 500
    assert not_ok.json() == {"error": "NOT_FOUND"}

    fake_places.error = requests.ConnectionError("down")
    down = client.get("/api/google-place", params={"place_id": "x"})
    assert down.status_code == 500
    assert down.json() == {"error": "Google fetch failed"}


def test_send_contact_emails_inbox_with_reply_to(client, monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    sent = []

    def fake_post(url, json=None, headers=None, timeout=None):
        sent.append({"url": url, "json": json, "headers": headers})
        return _Response(200)

    monkeypatch.setattr(notifications_module.requests, "post", fake_post)

    response = client.post(
        "/api/send-contact",
        json={
            "name": "Ann",
            "email": "ann@example.com",
            "business_name": "Ann <Bakery>",
            "city": "Austin, TX",
            "to": "jack@enoma.io",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    payload = sent[0]["json"]
    assert payload["to"] == ["jack@enoma.io"]
    assert payload["reply_to"] == "ann@example.com"
    assert payload["subject"] == "New Enoma page request — Ann <Bakery>"
    assert "Ann &lt;Bakery&gt;" in payload["html"]
    assert "<strong>Industry:</strong> Not provided" in payload["html"]
    assert "<strong>Plan:</strong> default" in payload["html"]
    assert sent[0]["headers"]["Authorization"] == "Bearer re_test"


def test_send_contact_validation_and_failure(client, monkeypatch):
    missing = client.post("/api/send-contact", json={"name": "Ann", "email": "ann@example.com"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing required fields"}

    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    monkeypatch.setattr(notifications_module.requests, "post", lambda *a, **kw: _Response(500, "boom"))
    failed = client.post(
        "/api/send-contact",
        json={"name": "Ann", "email": "ann@example.com", "business_name": "B", "city": "C", "to": "x@y.z"},
    )
    assert failed.status_code == 500
    assert failed.json() == {"error": "Email failed to send"}


def test_debug_reports_environment(client):
    response = client.get("/api/debug")

    body = response.json()
    assert body["ok"] is True
    assert set(body) == {"ok", "envLoaded", "hasKey", "timestamp"}
    assert body["timestamp"].endswith("Z")


def test_debug_can_be_disabled(monkeypatch):
    from fastapi.testclient import TestClient

    import enoma_api.api as api_module

    monkeypatch.setenv("DEBUG_ECHO_ENABLED", "false")
    with TestClient(api_module.create_app()) as client:
        assert client.get("/api/debug").status_code == 404


def test_unknown_method_uses_error_body(client):
    response = client.get("/api/track")
    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed"}
