from __future__ import annotations

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Business, SmallBusinessProfile

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: Any) -> str:
    if isinstance(text, (list, tuple)):
        text = text[0] if text else ""
    if not text:
        return ""
    return _NON_SLUG_RE.sub("-", str(text).lower()).strip("-")


def slug_exists(session: Session, slug: str) -> bool:
    """True if a business or a page (including one with no business) owns ``slug``."""
    if session.execute(select(Business.id).where(Business.slug == slug).limit(1)).first():
        return True
    return session.execute(
        select(SmallBusinessProfile.id).where(SmallBusinessProfile.username == slug).limit(1)
    ).first() is not None


def generate_unique_slug(session: Session, base: str) -> str:
    """Return ``base`` or the first free ``base-N``.

    Not transactional: two concurrent submissions for the same name can both
    pick the same candidate, and the loser fails on the unique slug index.
    """
    slug = base
    suffix = 1
    while slug_exists(session, slug):
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug
