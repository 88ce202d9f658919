from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(key: str, default: str = "") -> tuple[str, ...]:
    return tuple(
        entry.strip()
        for entry in os.getenv(key, default).split(",")
        if entry.strip()
    )


@dataclass(frozen=True)
class Config:
    database_url: str
    http_timeout: int
    frontend_origins: tuple[str, ...]

    supabase_url: Optional[str]
    supabase_service_role_key: Optional[str]
    supabase_anon_key: Optional[str]
    storage_bucket: str

    openai_api_key: Optional[str]
    openai_business_model: str
    openai_profile_model: str
    openai_timeout: int

    google_places_api_key: Optional[str]

    resend_api_key: Optional[str]
    email_from: str
    notify_email: str
    admin_emails: tuple[str, ...]

    stripe_secret_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    stripe_price_id: Optional[str]

    base_url: str
    site_url: str
    profile_template_path: Optional[str]
    blocked_ips: tuple[str, ...]
    debug_echo_enabled: bool


def load_config() -> Config:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    return Config(
        database_url=database_url,
        http_timeout=int(os.getenv("HTTP_TIMEOUT", "10")),
        frontend_origins=_env_list(
            "FRONTEND_ORIGINS",
            "https://enoma.io,http://localhost:3000,http://127.0.0.1:3000",
        ),
        supabase_url=(os.getenv("SUPABASE_URL") or "").rstrip("/") or None,
        # Older deployments named the service role key SUPABASE_SERVICE_KEY.
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_SERVICE_KEY") or None,
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
        storage_bucket=os.getenv("STORAGE_BUCKET", "business-images"),
        openai_api_key=os.getenv("OPENAI_KEY") or os.getenv("OPENAI_API_KEY") or None,
        openai_business_model=os.getenv("OPENAI_BUSINESS_MODEL", "gpt-4o"),
        openai_profile_model=os.getenv("OPENAI_PROFILE_MODEL", "gpt-4o-mini"),
        openai_timeout=int(os.getenv("OPENAI_TIMEOUT", "12")),
        google_places_api_key=os.getenv("GOOGLE_SERVER_PLACES_KEY") or None,
        resend_api_key=os.getenv("RESEND_API_KEY") or None,
        email_from=os.getenv("EMAIL_FROM", "Enoma <notifications@enoma.io>"),
        notify_email=os.getenv("NOTIFY_EMAIL", "jack@enoma.io"),
        admin_emails=tuple(email.lower() for email in _env_list("ADMIN_EMAILS")),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        stripe_price_id=os.getenv("STRIPE_PRICE_ID") or None,
        base_url=(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/"),
        site_url=(os.getenv("NEXT_PUBLIC_SITE_URL") or os.getenv("SITE_URL") or "https://enoma.io").rstrip("/"),
        profile_template_path=os.getenv("PROFILE_TEMPLATE_PATH") or None,
        blocked_ips=_env_list("BLOCKED_IPS", "127.0.0.1,::1"),
        debug_echo_enabled=_env_flag("DEBUG_ECHO_ENABLED", "true"),
    )
