from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import requests
import stripe
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .config import Config, load_config
from .db import session_scope
from .errors import RequestError
from .form_utils import MultipartForm, UploadedFile, normalize_array
from .metrics import collect_dashboard_metrics
from .models import Business, SmallBusinessProfile, row_to_dict
from .notifications import send_page_request
from .og_image import render_og_image
from .openai_client import OpenAIClient, get_openai_client
from .seo import base_url_from_headers, build_sitemap, load_template, render_profile_page
from .services.analytics import client_ip, is_blocked, record_event
from .services.billing import WebhookError, create_checkout_session, handle_event, verify_event
from .services.business_profiles import generate_business
from .services.google_places import PlacesClient, PlacesError, get_places_client
from .services.identity_profiles import generate_profile
from .supabase_rest import AuthError, AuthUser, SupabaseClient, SupabaseError, get_supabase_client

logger = logging.getLogger(__name__)

# Columns that older rows stored as JSON text or index-keyed objects
ARRAY_COLUMNS = ("services", "testimonials", "attachments", "service_area", "town_sections")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Public pages may be embedded by site builders; API JSON never is
        if not response.headers.get("content-type", "").startswith("text/html"):
            response.headers["X-Frame-Options"] = "DENY"
        return response


class ContactRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=320)
    business_name: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=200)
    industry: Optional[str] = Field(None, max_length=200)
    plan: Optional[str] = Field(None, max_length=100)
    to: Optional[str] = Field(None, max_length=320)


class TrackRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    slug: Optional[str] = Field(None, max_length=200)
    event: Optional[str] = Field(None, max_length=100)
    metadata: Any = None


def get_config() -> Config:
    return load_config()


async def read_multipart(request: Request) -> MultipartForm:
    """Buffer a multipart body into a MultipartForm (every key may repeat)."""
    fields: dict[str, list[str]] = defaultdict(list)
    files: dict[str, list[UploadedFile]] = defaultdict(list)
    async with request.form() as form:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                data = await value.read()
                files[key].append(UploadedFile(value.filename or "", value.content_type or "", data))
            else:
                fields[key].append(value)
    return MultipartForm(fields=dict(fields), files=dict(files))


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    supabase: SupabaseClient = Depends(get_supabase_client),
) -> AuthUser:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    token = authorization[7:].strip() if authorization.lower().startswith("bearer ") else authorization.strip()
    try:
        return supabase.get_user(token)
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid session")
    except SupabaseError as exc:
        logger.error("Auth lookup failed: %s", exc)
        raise HTTPException(status_code=500, detail="Auth unavailable")


def require_page_admin(
    user: AuthUser = Depends(get_current_user),
    config: Config = Depends(get_config),
) -> AuthUser:
    if config.admin_emails and (user.email or "").lower() not in config.admin_emails:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return user


def _request_base_url(request: Request) -> str:
    return base_url_from_headers(
        request.headers.get("x-forwarded-proto"),
        request.headers.get("x-forwarded-host"),
        request.headers.get("host"),
    )


def create_app() -> FastAPI:
    config = load_config()

    app = FastAPI(title="Enoma API", version="0.1.0")

    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.frontend_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature"],
    )

    @app.exception_handler(RequestError)
    async def request_error_handler(_: Request, exc: RequestError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected request body: %s", exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "Enoma backend is running!"

    # --- Page generation ---

    @app.post("/api/generate-business")
    def api_generate_business(
        user: AuthUser = Depends(require_page_admin),
        form: MultipartForm = Depends(read_multipart),
        ai: OpenAIClient = Depends(get_openai_client),
        storage: SupabaseClient = Depends(get_supabase_client),
        config: Config = Depends(get_config),
    ) -> dict:
        logger.info("Business profile generation invoked by %s", user.id)
        return generate_business(form, user, ai, storage, config)

    @app.post("/api/generate-profile")
    def api_generate_profile(
        form: MultipartForm = Depends(read_multipart),
        ai: OpenAIClient = Depends(get_openai_client),
        config: Config = Depends(get_config),
    ) -> dict:
        return generate_profile(form, ai, config)

    # --- Page data ---

    @app.get("/api/get-business")
    def api_get_business(
        slug: Optional[str] = Query(default=None),
        username: Optional[str] = Query(default=None),
    ) -> dict:
        key = slug or username
        if not key:
            raise HTTPException(status_code=400, detail="No slug provided")

        with session_scope() as session:
            row = session.execute(
                select(SmallBusinessProfile).where(SmallBusinessProfile.username == key)
            ).scalar_one_or_none()
            if row is None:
                logger.warning("Business profile not found: %s", key)
                raise HTTPException(status_code=404, detail="Business profile not found")
            data = row_to_dict(row)

        for column in ARRAY_COLUMNS:
            data[column] = normalize_array(data.get(column))
        return data

    @app.get("/api/get-profile")
    def api_get_profile(
        slug: Optional[str] = Query(default=None),
        username: Optional[str] = Query(default=None),
    ) -> RedirectResponse:
        query = urlencode({"slug": slug or username or ""})
        return RedirectResponse(url=f"/api/get-business?{query}", status_code=307)

    @app.get("/api/p")
    def api_profile_page(request: Request, slug: str = Query(default="")) -> Response:
        slug = slug.strip()
        if not slug:
            return PlainTextResponse("Missing slug", status_code=400)

        try:
            with session_scope() as session:
                business = session.execute(
                    select(Business).where(Business.slug == slug)
                ).scalar_one_or_none()
                if business is None:
                    return PlainTextResponse("Not found", status_code=404)
                page = render_profile_page(
                    business,
                    _request_base_url(request),
                    load_template(config.profile_template_path),
                )
        except Exception:
            logger.exception("Failed to render page for %s", slug)
            return PlainTextResponse("Server error", status_code=500)

        return HTMLResponse(
            page,
            headers={"Cache-Control": "public, max-age=0, s-maxage=300"},
        )

    @app.get("/api/og")
    def api_og_image(slug: str = Query(default="")) -> Response:
        if not slug:
            return PlainTextResponse("Missing slug", status_code=400)

        try:
            with session_scope() as session:
                business = session.execute(
                    select(Business).where(Business.slug == slug)
                ).scalar_one_or_none()
                if business is None:
                    return PlainTextResponse("Not found", status_code=404)
                png = render_og_image(business)
        except Exception:
            logger.exception("OG image failed for %s", slug)
            return PlainTextResponse("OG Error", status_code=500)

        return Response(
            png,
            media_type="image/png",
            headers={"Cache-Control": "public, max-age=86400, immutable"},
        )

    @app.get("/api/sitemap")
    def api_sitemap(request: Request) -> Response:
        try:
            with session_scope() as session:
                entries = session.execute(
                    select(Business.slug, Business.updated_at)
                    .where(Business.is_published.is_(True))
                    .order_by(Business.slug)
                ).all()
        except Exception:
            logger.exception("Sitemap error")
            return PlainTextResponse("Error generating sitemap", status_code=500)

        return Response(
            build_sitemap(entries, _request_base_url(request)),
            media_type="application/xml",
            headers={"Cache-Control": "public, max-age=0, s-maxage=3600"},
        )

    @app.get("/api/google-place")
    def api_google_place(
        place_id: Optional[str] = Query(default=None),
        places: PlacesClient = Depends(get_places_client),
    ) -> Any:
        if not place_id:
            raise HTTPException(status_code=400, detail="Missing place_id")
        try:
            return places.place_details(place_id)
        except PlacesError as exc:
            raise HTTPException(status_code=500, detail=exc.status)
        except requests.RequestException as exc:
            logger.error("Google fetch failed for %s: %s", place_id, exc)
            raise HTTPException(status_code=500, detail="Google fetch failed")

    @app.get("/api/dashboard")
    def api_dashboard(user: AuthUser = Depends(get_current_user)) -> dict:
        return collect_dashboard_metrics(user.id)

    # --- Contact + analytics ---

    @app.post("/api/send-contact")
    def api_send_contact(payload: ContactRequest) -> dict:
        if not all([payload.name, payload.email, payload.business_name, payload.city, payload.to]):
            raise HTTPException(status_code=400, detail="Missing required fields")

        sent = send_page_request(
            name=payload.name,
            email=payload.email,
            business_name=payload.business_name,
            city=payload.city,
            industry=payload.industry,
            plan=payload.plan,
        )
        if not sent:
            raise HTTPException(status_code=500, detail="Email failed to send")
        return {"success": True}

    @app.post("/api/track-event")
    def api_track_event(payload: TrackRequest, request: Request) -> dict:
        record_event(
            payload.slug,
            payload.event,
            metadata=payload.metadata,
            referrer=request.headers.get("referer"),
            user_agent=request.headers.get("user-agent"),
        )
        return {"success": True}

    @app.post("/api/track")
    def api_track(payload: TrackRequest, request: Request) -> Any:
        if not payload.slug or not payload.event:
            raise HTTPException(status_code=400, detail="Missing slug or event")

        ip = client_ip(
            request.headers.get("x-forwarded-for"),
            request.client.host if request.client else None,
        )
        if is_blocked(ip, config.blocked_ips):
            return Response(status_code=204)

        record_event(
            payload.slug,
            payload.event,
            metadata=payload.metadata,
            referrer=request.headers.get("referer"),
            user_agent=request.headers.get("user-agent"),
            ip=ip,
            is_internal=False,
        )
        return {"success": True}

    @app.get("/api/debug")
    def api_debug() -> dict:
        if not config.debug_echo_enabled:
            raise HTTPException(status_code=404, detail="Not Found")
        return {
            "ok": True,
            "envLoaded": bool(config.supabase_url),
            "hasKey": bool(config.supabase_anon_key),
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }

    # --- Billing ---

    @app.post("/stripe/webhook")
    async def stripe_webhook(
        request: Request,
        stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    ) -> PlainTextResponse:
        payload = await request.body()
        try:
            event = verify_event(payload, stripe_signature, config.stripe_webhook_secret)
        except WebhookError as exc:
            return PlainTextResponse(f"Webhook Error: {exc}", status_code=400)

        await run_in_threadpool(handle_event, event)
        return PlainTextResponse("OK")

    @app.post("/create-checkout-session")
    def api_create_checkout_session() -> Any:
        try:
            url = create_checkout_session(
                config,
                success_url=f"{config.base_url}/billing/success",
                cancel_url=f"{config.base_url}/billing/cancelled",
            )
        except stripe.StripeError as exc:
            logger.error("Error creating checkout session: %s", exc)
            return JSONResponse(status_code=500, content={"error": str(exc)})
        return {"url": url}

    @app.get("/test-checkout")
    def api_test_checkout() -> Response:
        try:
            url = create_checkout_session(
                config,
                success_url="https://google.com",
                cancel_url="https://google.com",
            )
        except stripe.StripeError as exc:
            logger.error("Error in test checkout: %s", exc)
            return PlainTextResponse("Error creating test checkout", status_code=500)
        return RedirectResponse(url, status_code=303)

    return app


app = create_app()
