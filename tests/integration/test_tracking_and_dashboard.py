from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from enoma_api.models import PageEvent, SmallBusinessProfile


def test_track_event_stores_row_with_headers(client, db_session: Session):
    response = client.post(
        "/api/track-event",
        json={"slug": "joes-plumbing", "event": "page_view"},
        headers={"referer": "https://google.com/", "user-agent": "pytest-agent"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    event = db_session.execute(select(PageEvent)).scalar_one()
    assert event.slug == "joes-plumbing"
    assert event.event_metadata == {}
    assert event.referrer == "https://google.com/"
    assert event.user_agent == "pytest-agent"
    assert event.ip is None


def test_track_event_stores_non_object_metadata(client, db_session: Session):
    response = client.post(
        "/api/track-event",
        json={"slug": "joes-plumbing", "event": "page_view", "metadata": ["hero", "cta"]},
    )

    assert response.status_code == 200
    event = db_session.execute(select(PageEvent)).scalar_one()
    assert event.event_metadata == ["hero", "cta"]


def test_track_event_requires_slug_and_event(client):
    response = client.post("/api/track-event", json={"slug": "joes-plumbing"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing slug or event"}


def test_track_records_client_ip(client, db_session: Session):
    response = client.post(
        "/api/track",
        json={"slug": "joes-plumbing", "event": "contact_click", "metadata": {"cta": "call"}},
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
    )

    assert response.status_code == 200
    event = db_session.execute(select(PageEvent)).scalar_one()
    assert event.ip == "203.0.113.7"
    assert event.is_internal is False
    assert event.event_metadata == {"cta": "call"}


def test_track_drops_blocked_ips(client, db_session: Session):
    response = client.post(
        "/api/track",
        json={"slug": "joes-plumbing", "event": "page_view"},
        headers={"x-forwarded-for": "127.0.0.1"},
    )

    assert response.status_code == 204
    assert response.content == b""
    assert db_session.execute(select(PageEvent)).first() is None


def test_dashboard_counts_recent_events_and_sources(client, auth_headers, db_session: Session):
    now = datetime.now(timezone.utc)
    db_session.add(SmallBusinessProfile(username="joes-plumbing", business_name="Joe's Plumbing", auth_id="user-1"))
    db_session.add_all([
        PageEvent(slug="joes-plumbing", event="page_view", referrer="https://google.com/", created_at=now),
        PageEvent(slug="joes-plumbing", event="page_view", referrer="https://google.com/", created_at=now),
        PageEvent(slug="joes-plumbing", event="page_view", referrer=None, created_at=now),
        PageEvent(slug="joes-plumbing", event="page_view", referrer="", created_at=now - timedelta(days=45)),
        PageEvent(slug="joes-plumbing", event="contact_click", created_at=now),
        PageEvent(slug="someone-else", event="page_view", created_at=now),
    ])
    db_session.commit()

    response = client.get("/api/dashboard", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["business_name"] == "Joe's Plumbing"
    assert body["public_url"] == "/p/joes-plumbing"
    assert body["page_views"] == 3
    assert body["contact_clicks"] == 1
    assert {entry["source"]: entry["visits"] for entry in body["sources"]} == {
        "https://google.com/": 2,
        "direct": 2,
    }


def test_dashboard_requires_a_profile(client, auth_headers):
    response = client.get("/api/dashboard", headers=auth_headers)
    assert response.status_code == 404
