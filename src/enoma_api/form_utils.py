"""Coercion helpers for loosely-typed form and JSON input.

Browser forms send every value as a string (or a list of strings when a field
repeats), and older rows store list columns as JSON text or as index-keyed
objects. These helpers fold all of that into plain Python values.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

TRUTHY_VALUES = {"true", "on", "1", "yes"}
_MISSING = object()

_FENCE_JSON_RE = re.compile(r"```json", re.IGNORECASE)
_APOSTROPHES_RE = re.compile(r"[’']")
_WHITESPACE_RE = re.compile(r"\s+")
_FILENAME_RE = re.compile(r"[^a-z0-9.]+")


def first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else ""
    if value is None:
        return ""
    return value


def safe_json(value: Any, fallback: Any = _MISSING) -> Any:
    if fallback is _MISSING:
        fallback = []
    value = first(value)
    if not value:
        return fallback
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return fallback


def parse_csv(value: Any) -> list[str]:
    raw = first(value)
    if not raw:
        return []
    return [part.strip() for part in str(raw).split(",") if part.strip()]


def parse_list(value: Any) -> list[str]:
    """Accept either a JSON list or comma separated text."""
    raw = first(value)
    if not raw:
        return []
    if isinstance(raw, str) and raw.strip().startswith("["):
        parsed = safe_json(raw, [])
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    return parse_csv(raw)


def to_bool(value: Any) -> bool:
    return str(first(value)).strip().lower() in TRUTHY_VALUES


def extract_json(text: Any) -> str:
    if not text or not isinstance(text, str):
        return ""
    return _FENCE_JSON_RE.sub("", text).replace("```", "").strip()


def normalize_array(value: Any) -> list:
    """Fold arrays, index-keyed objects and stringified JSON into a list."""
    if not value:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            return list(parsed.values())
    return []


def normalize_seo_business_name(name: Any) -> Optional[str]:
    if not name:
        return None
    cleaned = _APOSTROPHES_RE.sub("", str(name))
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def safe_filename(name: Optional[str] = "image") -> str:
    return _FILENAME_RE.sub("-", str(name or "image").lower()).strip("-")


def or_none(value: Any) -> Optional[str]:
    value = first(value)
    return value if value else None


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()


@dataclass
class MultipartForm:
    """Fields and files of one multipart submission, every key multi-valued."""

    fields: dict[str, list[str]] = field(default_factory=dict)
    files: dict[str, list[UploadedFile]] = field(default_factory=dict)

    def get(self, name: str, default: str = "") -> str:
        value = first(self.fields.get(name))
        return value if value else default

    def has(self, name: str) -> bool:
        return bool(self.get(name))

    def file(self, name: str) -> Optional[UploadedFile]:
        uploads = self.files.get(name) or []
        return uploads[0] if uploads else None

    def files_for(self, name: str) -> list[UploadedFile]:
        return list(self.files.get(name) or [])
