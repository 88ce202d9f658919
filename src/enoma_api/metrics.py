from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, literal_column, select

from .db import session_scope
from .errors import RequestError
from .models import PageEvent, SmallBusinessProfile

METRICS_WINDOW_DAYS = 30


def collect_dashboard_metrics(auth_id: str, window_days: int = METRICS_WINDOW_DAYS) -> dict:
    """Page metrics for the business page owned by ``auth_id``."""
    since = datetime.now(timezone.utc) - timedelta(days=window_days)

    with session_scope() as session:
        profile = session.execute(
            select(SmallBusinessProfile.username, SmallBusinessProfile.business_name)
            .where(SmallBusinessProfile.auth_id == auth_id)
            .order_by(SmallBusinessProfile.created_at.desc())
            .limit(1)
        ).first()
        if profile is None:
            raise RequestError(404, "No profile found for user")

        username, business_name = profile

        event_counts = dict(
            session.execute(
                select(PageEvent.event, func.count(PageEvent.id))
                .where(PageEvent.slug == username)
                .where(PageEvent.event.in_(("page_view", "contact_click")))
                .where(PageEvent.created_at >= since)
                .group_by(PageEvent.event)
            ).all()
        )

        # Literal constants keep the SELECT and GROUP BY expressions identical
        source_key = func.coalesce(func.nullif(PageEvent.referrer, literal_column("''")), literal_column("'direct'"))
        source_rows = session.execute(
            select(source_key, func.count(PageEvent.id))
            .where(PageEvent.slug == username)
            .where(PageEvent.event == "page_view")
            .group_by(source_key)
            .order_by(func.count(PageEvent.id).desc())
        ).all()

    return {
        "business_name": business_name or username,
        "username": username,
        "public_url": f"/p/{username}",
        "page_views": int(event_counts.get("page_view", 0)),
        "contact_clicks": int(event_counts.get("contact_click", 0)),
        "sources": [
            {"source": source, "visits": int(visits)}
            for source, visits in source_rows
        ],
    }
