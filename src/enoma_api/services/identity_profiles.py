"""Personal identity profiles: form + optional resume in, AI-polished profile out."""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..config import Config
from ..db import session_scope, upsert
from ..errors import RequestError
from ..form_utils import MultipartForm, or_none, safe_json
from ..models import Profile
from ..openai_client import (
    AIEmptyResponseError,
    AIInvalidJSONError,
    AIRequestError,
    AITimeoutError,
    OpenAIClient,
)
from ..slugs import slugify
from .resume import ResumeError, extract_resume_text

logger = logging.getLogger(__name__)

SOCIAL_FIELDS = ("linkedin", "twitter", "github", "instagram", "youtube")


def build_profile_prompt(form: MultipartForm, expertise: list, resume_text: str) -> str:
    return f"""
You are constructing a public identity profile.

If resume is present, trust resume facts over form.

Return ONLY JSON in this format:

{{
  "display_name":"",
  "headline":"",
  "summary":"",
  "expertise":[],
  "timeline":[]
}}

FORM INFO:
Name: {form.get("name")}
Headline: {form.get("headline")}
Bio: {form.get("bio")}
Role: {form.get("role")}
Company: {form.get("company")}
Expertise: {", ".join(str(item) for item in expertise)}

RESUME CONTENT:
{resume_text}
"""


def _json_list(raw: Any) -> list:
    parsed = safe_json(raw, [])
    return parsed if isinstance(parsed, list) else []


def read_resume(form: MultipartForm) -> str:
    upload = form.file("resume")
    if upload is None or upload.size == 0:
        return ""
    logger.info("Resume uploaded (%d bytes), extracting", upload.size)
    try:
        return extract_resume_text(upload.data, upload.content_type, upload.filename)
    except ResumeError as exc:
        raise RequestError(400, str(exc))


def generate_profile(form: MultipartForm, ai: OpenAIClient, config: Config) -> dict[str, Any]:
    started = time.monotonic()

    name = form.get("name")
    if not name:
        raise RequestError(400, "Name required")

    username = slugify(name)
    expertise = _json_list(form.fields.get("expertise"))
    timeline = _json_list(form.fields.get("timeline"))
    resume_text = read_resume(form)

    try:
        generated = ai.complete_json(
            build_profile_prompt(form, expertise, resume_text),
            model=config.openai_profile_model,
            timeout=config.openai_timeout,
        )
    except AITimeoutError:
        raise RequestError(504, "AI timeout")
    except AIRequestError as exc:
        raise RequestError(500, "OpenAI failed", {"raw": exc.body})
    except AIEmptyResponseError:
        raise RequestError(500, "AI empty")
    except AIInvalidJSONError as exc:
        raise RequestError(500, "Bad AI JSON", {"raw": exc.raw})

    final_profile = {
        "username": username,
        "type": or_none(form.fields.get("type")),
        "profile_image": or_none(form.fields.get("image")),
        "display_name": generated.get("display_name") or name,
        "headline": generated.get("headline") or or_none(form.fields.get("headline")),
        "summary": generated.get("summary") or or_none(form.fields.get("bio")),
        "expertise": generated.get("expertise") or expertise,
        "timeline": generated.get("timeline") or timeline,
        "contact": {
            "email": or_none(form.fields.get("email")),
            "phone": or_none(form.fields.get("phone")),
            "website": or_none(form.fields.get("website")),
        },
        "social": {field: or_none(form.fields.get(field)) for field in SOCIAL_FIELDS},
        "is_public": True,
    }

    logger.info("Saving profile: %s", username)
    try:
        with session_scope() as session:
            upsert(
                session,
                Profile,
                {**final_profile, "updated_at": datetime.now(timezone.utc)},
                ["username"],
            )
    except SQLAlchemyError as exc:
        logger.error("Profile upsert failed for %s: %s", username, exc)
        raise RequestError(500, "DB failure")

    logger.info("Saved profile %s in %.0f ms", username, (time.monotonic() - started) * 1000)
    return final_profile
