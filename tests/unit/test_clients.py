from __future__ import annotations

import io

import docx
import fitz
import pytest
import requests

from enoma_api.openai_client import (
    AIEmptyResponseError,
    AIInvalidJSONError,
    AIRequestError,
    AITimeoutError,
    OpenAIClient,
)
from enoma_api.services.google_places import PlacesClient, PlacesError
from enoma_api.services.resume import MAX_RESUME_BYTES, MAX_RESUME_CHARS, ResumeError, extract_resume_text
from enoma_api.supabase_rest import AuthError, SupabaseClient


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


def _completion(content):
    return {"choices": [{"message": {"content": content}}]}


def test_complete_json_strips_fences(monkeypatch):
    client = OpenAIClient("sk-test")
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update(json=json, headers=headers, timeout=timeout)
        return _Response(payload=_completion('```json\n{"headline": "Hi"}\n```'))

    monkeypatch.setattr(client.session, "post", fake_post)

    result = client.complete_json("prompt", model="gpt-4o", system="json only", temperature=0.2)

    assert result == {"headline": "Hi"}
    assert captured["json"]["messages"][0] == {"role": "system", "content": "json only"}
    assert captured["json"]["temperature"] == 0.2
    assert captured["headers"]["Authorization"] == "Bearer sk-test"
    assert captured["timeout"] == 12


@pytest.mark.parametrize(
    "response, error",
    [
        (_Response(status_code=429, payload={"error": {"message": "rate limited"}}), AIRequestError),
        (_Response(payload={"choices": []}), AIEmptyResponseError),
        (_Response(payload=_completion("not json at all")), AIInvalidJSONError),
        (_Response(payload=_completion("[1, 2]")), AIInvalidJSONError),
    ],
)
def test_complete_json_failures(monkeypatch, response, error):
    client = OpenAIClient("sk-test")
    monkeypatch.setattr(client.session, "post", lambda *a, **kw: response)

    with pytest.raises(error):
        client.complete_json("prompt", model="gpt-4o")


def test_openai_timeout(monkeypatch):
    client = OpenAIClient("sk-test", timeout=1)

    def slow(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(client.session, "post", slow)

    with pytest.raises(AITimeoutError):
        client.chat([{"role": "user", "content": "hi"}], model="gpt-4o-mini")


def test_openai_requires_key():
    with pytest.raises(AIRequestError):
        OpenAIClient(None).chat([], model="gpt-4o")


def test_places_details_returns_result(monkeypatch):
    client = PlacesClient("key")
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append(params)
        return _Response(payload={"status": "OK", "result": {"rating": 4.5}})

    monkeypatch.setattr(client.session, "get", fake_get)

    assert client.place_details("abc") == {"rating": 4.5}
    assert calls[0]["fields"] == "rating,reviews,opening_hours"


def test_places_non_ok_status(monkeypatch):
    client = PlacesClient("key")
    monkeypatch.setattr(client.session, "get", lambda *a, **kw: _Response(payload={"status": "INVALID_REQUEST"}))

    with pytest.raises(PlacesError) as excinfo:
        client.place_details("abc")
    assert excinfo.value.status == "INVALID_REQUEST"


def test_places_retries_transport_errors(monkeypatch):
    client = PlacesClient("key")
    monkeypatch.setattr(PlacesClient._get_details.retry, "sleep", lambda seconds: None)
    attempts = []

    def flaky(*args, **kwargs):
        attempts.append(1)
        if len(attempts) < 3:
            raise requests.ConnectionError("reset")
        return _Response(payload={"status": "OK", "result": {}})

    monkeypatch.setattr(client.session, "get", flaky)

    assert client.place_details("abc") == {}
    assert len(attempts) == 3


def test_places_without_key():
    with pytest.raises(PlacesError):
        PlacesClient(None).place_details("abc")


def test_supabase_get_user(monkeypatch):
    client = SupabaseClient("https://project.supabase.co/", "service-key")
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen.update(url=url, headers=headers)
        if headers["Authorization"] == "Bearer good":
            return _Response(payload={"id": "u-1", "email": "a@b.c"})
        return _Response(status_code=401, payload={"msg": "bad jwt"})

    monkeypatch.setattr(client.session, "get", fake_get)

    user = client.get_user("good")
    assert (user.id, user.email) == ("u-1", "a@b.c")
    assert seen["url"] == "https://project.supabase.co/auth/v1/user"
    assert client.session.headers["apikey"] == "service-key"

    with pytest.raises(AuthError):
        client.get_user("bad")


def test_supabase_upload_returns_public_url(monkeypatch):
    client = SupabaseClient("https://project.supabase.co", "service-key")
    seen = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        seen.update(url=url, headers=headers, data=data)
        return _Response(status_code=200, payload={"Key": "ok"})

    monkeypatch.setattr(client.session, "post", fake_post)

    url = client.upload_object("business-images", "abc/logo 1.png", b"png", "image/png")

    assert seen["url"] == "https://project.supabase.co/storage/v1/object/business-images/abc/logo%201.png"
    assert seen["headers"]["x-upsert"] == "true"
    assert url == "https://project.supabase.co/storage/v1/object/public/business-images/abc/logo%201.png"


def test_resume_plain_text_is_truncated():
    text = extract_resume_text(b"x" * (MAX_RESUME_CHARS + 50), "text/plain")
    assert len(text) == MAX_RESUME_CHARS


def test_resume_docx():
    document = docx.Document()
    document.add_paragraph("Staff Engineer at Acme")
    buffer = io.BytesIO()
    document.save(buffer)

    text = extract_resume_text(
        buffer.getvalue(),
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )

    assert "Staff Engineer at Acme" in text


def test_resume_pdf():
    pdf = fitz.open()
    page = pdf.new_page()
    page.insert_text((72, 72), "Principal Analyst")
    data = pdf.tobytes()
    pdf.close()

    assert "Principal Analyst" in extract_resume_text(data, "application/pdf")


def test_resume_limits():
    with pytest.raises(ResumeError, match="5MB"):
        extract_resume_text(b"x" * (MAX_RESUME_BYTES + 1), "text/plain")
    with pytest.raises(ResumeError, match="Unsupported"):
        extract_resume_text(b"{}", "application/json")
