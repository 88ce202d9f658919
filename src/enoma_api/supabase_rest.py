"""Supabase Auth and Storage over their REST endpoints.

Rows live in the same Supabase project but are reached through SQLAlchemy
(see ``db.py``); only token validation and file uploads go through here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

import requests

from .config import load_config

logger = logging.getLogger(__name__)


class SupabaseError(Exception):
    pass


class AuthError(SupabaseError):
    pass


class StorageError(SupabaseError):
    pass


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str]


class SupabaseClient:
    """Service-role client with session pooling."""

    def __init__(self, url: Optional[str], service_key: Optional[str], timeout: int = 10) -> None:
        self.url = (url or "").rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.session = requests.Session()
        if service_key:
            self.session.headers.update({"apikey": service_key})

    def _require_configured(self) -> None:
        if not self.url or not self.service_key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    def get_user(self, access_token: str) -> AuthUser:
        """Resolve a user access token (JWT) to the user it was issued for."""
        self._require_configured()
        if not access_token:
            raise AuthError("Missing access token")

        try:
            resp = self.session.get(
                f"{self.url}/auth/v1/user",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(f"Auth request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.info("Supabase rejected token: %d %s", resp.status_code, resp.text[:200])
            raise AuthError("Invalid session")

        data = resp.json()
        user_id = data.get("id")
        if not user_id:
            raise AuthError("Invalid session")
        return AuthUser(id=str(user_id), email=data.get("email"))

    def upload_object(self, bucket: str, path: str, content: bytes, content_type: str, upsert: bool = True) -> str:
        """Upload bytes to a storage bucket and return the object's public URL."""
        self._require_configured()
        try:
            resp = self.session.post(
                f"{self.url}/storage/v1/object/{bucket}/{quote(path)}",
                data=content,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": content_type,
                    "x-upsert": "true" if upsert else "false",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StorageError(f"Upload of {path} failed: {exc}") from exc

        if resp.status_code >= 300:
            raise StorageError(f"Upload of {path} failed with {resp.status_code}: {resp.text[:200]}")
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"


@lru_cache(maxsize=1)
def get_supabase_client() -> SupabaseClient:
    config = load_config()
    return SupabaseClient(config.supabase_url, config.supabase_service_role_key, timeout=config.http_timeout)
