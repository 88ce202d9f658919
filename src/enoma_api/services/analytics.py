from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db import session_scope
from ..errors import RequestError
from ..models import PageEvent

logger = logging.getLogger(__name__)


def client_ip(forwarded_for: Optional[str], peer_host: Optional[str]) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""
    if forwarded_for:
        candidate = forwarded_for.split(",")[0].strip()
        if candidate:
            return candidate
    return peer_host or None


def is_blocked(ip: Optional[str], blocked_ips: Iterable[str]) -> bool:
    return not ip or ip in set(blocked_ips)


def record_event(
    slug: str,
    event: str,
    metadata: Any = None,
    referrer: Optional[str] = None,
    user_agent: Optional[str] = None,
    ip: Optional[str] = None,
    is_internal: Optional[bool] = None,
) -> None:
    if not slug or not event:
        raise RequestError(400, "Missing slug or event")

    try:
        with session_scope() as session:
            session.add(
                PageEvent(
                    slug=slug,
                    event=event,
                    event_metadata=metadata or {},
                    referrer=referrer or None,
                    user_agent=user_agent or None,
                    ip=ip,
                    is_internal=is_internal,
                )
            )
    except SQLAlchemyError as exc:
        logger.error("Analytics insert failed for %s/%s: %s", slug, event, exc)
        raise RequestError(500, "Failed to track event")
