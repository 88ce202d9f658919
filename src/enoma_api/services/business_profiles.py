"""Business page generation.

Turns one dashboard form submission into a published business page:
1. Resolve the business (create it with a unique slug, or check membership
   when editing)
2. Push the logo and gallery images to Supabase Storage
3. Ask OpenAI for the page copy (new businesses, or edits that ask for it)
4. Merge AI copy, form input and the previous profile into one row and
   upsert it on ``business_id``
5. Mirror the headline fields onto ``businesses`` for the sitemap and the
   server-rendered page
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Config
from ..db import session_scope, upsert
from ..errors import RequestError
from ..form_utils import (
    MultipartForm,
    UploadedFile,
    normalize_seo_business_name,
    parse_list,
    safe_filename,
    safe_json,
    to_bool,
)
from ..models import Business, BusinessMember, SmallBusinessProfile
from ..notifications import notify_new_submission
from ..openai_client import AIError, AIInvalidJSONError, AIRequestError, JSON_ONLY_SYSTEM_PROMPT, OpenAIClient
from ..slugs import generate_unique_slug, slugify
from ..supabase_rest import AuthUser, StorageError, SupabaseClient

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif"}
IMAGE_MIMETYPES = {"image/png", "image/jpg", "image/jpeg", "image/webp", "image/gif"}
LOGO_EXTENSIONS = {"png", "jpg", "jpeg"}
LOGO_MIMETYPES = {"image/png", "image/jpg", "image/jpeg"}
MAX_LOGO_BYTES = 3 * 1024 * 1024
MAX_UPLOADED_IMAGES = 12
MAX_ATTACHMENTS = 24

# Copy columns the model writes; manual edits may override them
AI_COPY_FIELDS = (
    "hero_headline",
    "hero_tagline",
    "about",
    "why_choose_us",
    "services_intro",
    "seo_title",
    "seo_description",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _millis() -> int:
    return int(time.time() * 1000)


def resolve_business(
    session: Session,
    user: AuthUser,
    business_name: str,
    incoming_business_id: Optional[str],
) -> Business:
    """Load the business being edited, or create a new one owned by ``user``."""
    if incoming_business_id:
        try:
            business_id = uuid.UUID(incoming_business_id)
        except ValueError:
            raise RequestError(400, "Invalid business_id")

        membership = session.execute(
            select(BusinessMember.role)
            .where(BusinessMember.user_id == user.id)
            .where(BusinessMember.business_id == business_id)
        ).scalar_one_or_none()
        if membership is None:
            raise RequestError(403, "Not authorized for this business")

        business = session.get(Business, business_id)
        if business is None:
            raise RequestError(404, "Business not found")
        return business

    slug = generate_unique_slug(session, slugify(business_name) or "business")
    business = Business(name=business_name, slug=slug)
    session.add(business)
    session.flush()
    session.add(BusinessMember(user_id=user.id, business_id=business.id, role="admin"))
    session.flush()
    logger.info("Created business %s (%s) for user %s", slug, business.id, user.id)
    return business


def upload_logo(storage: SupabaseClient, bucket: str, business_id: uuid.UUID, upload: Optional[UploadedFile]) -> Optional[str]:
    """Upload a PNG/JPG logo. Returns its public URL, or None when skipped."""
    if upload is None or upload.size == 0:
        return None

    ext = upload.extension or "png"
    mimetype = (upload.content_type or "").lower()
    if ext not in LOGO_EXTENSIONS or mimetype not in LOGO_MIMETYPES:
        logger.warning("Invalid logo type %r / %r (PNG/JPG only)", upload.filename, mimetype)
        return None
    if upload.size > MAX_LOGO_BYTES:
        logger.warning("Logo too large (%d bytes)", upload.size)
        return None

    path = f"{business_id}/logo-{_millis()}.{ext}"
    content_type = mimetype or f"image/{'jpeg' if ext == 'jpg' else ext}"
    try:
        return storage.upload_object(bucket, path, upload.data, content_type)
    except StorageError as exc:
        logger.warning("Logo upload failed: %s", exc)
        return None


def _is_image(upload: UploadedFile) -> bool:
    return (upload.content_type or "").lower() in IMAGE_MIMETYPES or upload.extension in IMAGE_EXTENSIONS


def upload_images(storage: SupabaseClient, bucket: str, business_id: uuid.UUID, uploads: list[UploadedFile]) -> list[str]:
    """Upload gallery images and return the public URLs that succeeded."""
    valid = [upload for upload in uploads if upload.size > 0 and _is_image(upload)]
    urls = []
    for upload in valid[:MAX_UPLOADED_IMAGES]:
        ext = upload.extension or "jpg"
        base = safe_filename(upload.filename or "image")
        if base.endswith(f".{ext}"):
            base = base[: -(len(ext) + 1)]
        path = f"{business_id}/{_millis()}-{base}.{ext}"
        try:
            urls.append(
                storage.upload_object(bucket, path, upload.data, upload.content_type or f"image/{ext}")
            )
        except StorageError as exc:
            logger.warning("Image upload failed: %s", exc)
    return urls


def services_for_prompt(raw_services: str) -> str:
    """Services as a JSON string, whether the form sent JSON or free text."""
    if not raw_services:
        return "[]"
    try:
        json.loads(raw_services)
        return raw_services
    except ValueError:
        return json.dumps([
            {"service_name": name, "service_description": "", "benefits": []}
            for name in (part.strip() for part in raw_services.split(","))
            if name
        ])


def build_business_prompt(form: MultipartForm, services_json: str) -> str:
    return f"""
You are an expert local-business marketer and SEO copywriter.

Your task is to transform raw business input into polished, trustworthy,
SEO-optimized website content for a single-page business profile.

Return ONLY valid JSON that matches the schema below.
Do not include markdown, comments, or explanations.

--------------------------------
JSON SCHEMA (MUST MATCH EXACTLY)
--------------------------------
{{
  "seo_title": "",
  "seo_description": "",
  "hero_headline": "",
  "hero_tagline": "",
  "about": "",
  "why_choose_us": "",
  "services_intro": "",
  "trust_badges": [],
  "faqs": [
    {{ "question": "", "answer": "" }}
  ],
  "services": [
    {{
      "service_name": "",
      "service_description": ""
    }}
  ],
  "primary_cta": {{
    "label": "",
    "type": "call|email|form|link",
    "value": ""
  }}
}}

--------------------------------
BUSINESS INPUT
--------------------------------
Business name: {form.get("business_name")}
Tone preference: {form.get("tone")}

Owner notes (raw, unedited):
{form.get("about")}

Services (structured JSON):
{services_json}

Location:
{form.get("address")}

Phone:
{form.get("phone")}

Website:
{form.get("website")}

Primary city (if available):
{form.get("city")}

State / Region:
{form.get("state")}

Service areas (CSV):
{", ".join(parse_list(form.fields.get("service_area")))}

Operational flags:
- Open now: {to_bool(form.fields.get("is_open_now"))}
- Accepting clients: {to_bool(form.fields.get("accepting_clients"))}
- Emergency services: {to_bool(form.fields.get("offers_emergency"))}

--------------------------------
CONTENT RULES
--------------------------------
- Write clear, customer-facing language
- Prioritize trust and clarity
- Assume visitors are comparing providers
- Fill gaps intelligently if inputs are weak
- Rewrite services cleanly even if provided
- Default CTA to phone if phone exists
- Include one concise sentence indicating the primary service area when appropriate
- Write a concise 1-2 sentence introduction summarizing services and service area for use above the service list

--------------------------------
HERO HEADLINE RULES
--------------------------------
- 6-12 words max
- Do NOT include the business name
- Focus on primary service + location
- Confident, local, trustworthy
- No punctuation at the end
- Title Case (headline capitalization)
- Avoid marketing cliches

--------------------------------
SEO RULES
--------------------------------
- seo_title <= 60 characters
- seo_description <= 160 characters
- Use natural local-service SEO phrasing

--------------------------------
LOCAL SEO ENHANCEMENT RULES
--------------------------------
- Use natural "near me" phrasing sparingly (max 1-2 times total)
- Prioritize city and service-area mentions over generic keywords
- If service areas are provided:
  - Mention the primary city once
  - Reference surrounding areas collectively (e.g., "serving the greater [City] area")
- Do NOT invent cities or neighborhoods
- Avoid keyword stuffing or repetitive location phrases
- Write as if the business is competing in Google local results
- Use city or service-area context naturally in services_intro when available

--------------------------------
OUTPUT REQUIREMENTS
--------------------------------
- Return ONLY the JSON object
- All arrays must exist
- No null values
"""


def normalize_cta_type(value: Any) -> str:
    cta_type = str(value or "").strip().lower()
    return "call" if cta_type == "phone" else cta_type


def normalize_generated(generated: dict[str, Any], primary_service: str = "", city: str = "") -> dict[str, Any]:
    """Force the model's reply into the shape profile.html renders."""
    result = dict(generated)

    services = result.get("services") if isinstance(result.get("services"), list) else []
    result["services"] = [
        {
            "service_name": str(service.get("service_name") or service.get("name") or "").strip(),
            "service_description": str(service.get("service_description") or service.get("description") or "").strip(),
        }
        for service in services
        if isinstance(service, dict)
    ]
    result["services"] = [service for service in result["services"] if service["service_name"]]

    # profile.html reads faq.q / faq.a
    faqs = result.get("faqs") if isinstance(result.get("faqs"), list) else []
    result["faqs"] = [
        {
            "q": str(faq.get("q") or faq.get("question") or "").strip(),
            "a": str(faq.get("a") or faq.get("answer") or "").strip(),
        }
        for faq in faqs
        if isinstance(faq, dict)
    ]
    result["faqs"] = [faq for faq in result["faqs"] if faq["q"] and faq["a"]]

    if not isinstance(result.get("trust_badges"), list):
        result["trust_badges"] = []
    if not isinstance(result.get("primary_cta"), dict):
        result["primary_cta"] = {}

    headline = result.get("hero_headline")
    if not headline or not isinstance(headline, str):
        result["hero_headline"] = f"Reliable {primary_service or 'Local Services'} in {city or 'Your Area'}"

    return result


def generate_copy(ai: OpenAIClient, model: str, form: MultipartForm, services_json: str) -> dict[str, Any]:
    try:
        generated = ai.complete_json(
            build_business_prompt(form, services_json),
            model=model,
            system=JSON_ONLY_SYSTEM_PROMPT,
            temperature=0.2,
        )
    except AIRequestError:
        raise RequestError(500, "AI request failed")
    except AIInvalidJSONError:
        raise RequestError(500, "AI generation failed", {"details": "Invalid JSON returned from OpenAI"})
    except AIError:
        raise RequestError(500, "AI generation failed")

    return normalize_generated(generated, form.get("primary_service"), form.get("city"))


def _attachment_url(attachment: Any) -> str:
    if isinstance(attachment, str):
        return attachment
    if isinstance(attachment, dict):
        return attachment.get("url") or ""
    return ""


def merge_attachments(existing: Any, removed: Any, new_urls: list[str]) -> list[str]:
    removed = removed if isinstance(removed, list) else []
    existing_urls = [
        url
        for url in (_attachment_url(item) for item in (existing if isinstance(existing, list) else []))
        if url
    ]
    merged = [url for url in existing_urls if url not in removed] + list(new_urls)
    return merged[-MAX_ATTACHMENTS:]


def build_profile_payload(
    form: MultipartForm,
    user: AuthUser,
    business: Business,
    generated: Optional[dict[str, Any]],
    existing: Optional[SmallBusinessProfile],
    logo_url: Optional[str],
    new_attachments: list[str],
    services_json: str,
) -> dict[str, Any]:
    phone = form.get("phone")
    website = form.get("website")

    if generated is not None:
        copy = {name: generated.get(name) or None for name in AI_COPY_FIELDS}
        services = generated["services"]
        faqs = generated["faqs"]
        trust_badges = generated["trust_badges"]
        cta = generated["primary_cta"]
        cta_label = cta.get("label")
        cta_type = normalize_cta_type(cta.get("type"))
        cta_value = cta.get("value")
    else:
        # Manual edit: keep what the model wrote last time unless overridden
        copy = {
            name: form.get(name) or (getattr(existing, name) if existing else None) or None
            for name in AI_COPY_FIELDS
        }
        services = (existing.services if existing else None) or safe_json(services_json, [])
        faqs = (existing.faqs if existing else None) or []
        trust_badges = (existing.trust_badges if existing else None) or []
        cta_label = form.get("primary_cta_label") or (existing.primary_cta_label if existing else None)
        cta_type = normalize_cta_type(form.get("primary_cta_type") or (existing.primary_cta_type if existing else None))
        cta_value = form.get("primary_cta_value") or (existing.primary_cta_value if existing else None)

    if form.has("testimonials"):
        testimonials = safe_json(form.fields.get("testimonials"), [])
    else:
        testimonials = (existing.testimonials if existing else None) or []

    attachments = merge_attachments(
        existing.attachments if existing else [],
        safe_json(form.fields.get("attachments_remove"), []),
        new_attachments,
    )

    business_name = form.get("business_name")
    return {
        "business_id": business.id,
        "auth_id": user.id,
        "username": business.slug,
        "business_name": business_name,
        "seo_business_name": normalize_seo_business_name(business_name),
        "owner_name": form.get("owner_name") or form.get("name") or None,
        "email": form.get("email"),
        "phone": phone,
        "address": form.get("address"),
        "website": website,
        "google_place_id": form.get("google_place_id") or None,
        "primary_category": form.get("primary_category") or None,
        "logo_url": logo_url or None,
        **copy,
        "services": services,
        "faqs": faqs,
        "trust_badges": trust_badges,
        "primary_cta_label": cta_label or "Contact Us",
        "primary_cta_type": cta_type or "call",
        "primary_cta_value": cta_value or phone or website or "",
        "service_area": parse_list(form.fields.get("service_area")),
        "testimonials": testimonials,
        "attachments": attachments,
        "is_open_now": to_bool(form.fields.get("is_open_now")),
        "accepting_clients": to_bool(form.fields.get("accepting_clients")),
        "offers_emergency": to_bool(form.fields.get("offers_emergency")),
        "is_public": True,
        "updated_at": _now(),
    }


def sync_business_row(session: Session, business: Business, form: MultipartForm, payload: dict[str, Any], site_url: str) -> None:
    """Mirror page fields onto ``businesses`` for the sitemap and /api/p.

    Runs in a savepoint; a failure here never loses the profile write.
    """
    try:
        with session.begin_nested():
            session.execute(
                update(Business)
                .where(Business.id == business.id)
                .values(
                    name=payload["business_name"],
                    slug=business.slug,
                    phone=form.get("phone") or None,
                    city=form.get("city") or None,
                    state=form.get("state") or None,
                    service_area=payload["service_area"],
                    primary_category=payload["primary_category"],
                    seo_title=payload["seo_title"],
                    seo_description=payload["seo_description"],
                    final_title=payload["seo_title"],
                    final_description=payload["seo_description"],
                    final_canonical_url=f"{site_url.rstrip('/')}/{business.slug}",
                    final_og_image=payload["logo_url"],
                    is_published=True,
                    updated_at=_now(),
                )
            )
    except SQLAlchemyError as exc:
        logger.warning("Failed to sync businesses row %s: %s", business.id, exc)


def generate_business(
    form: MultipartForm,
    user: AuthUser,
    ai: OpenAIClient,
    storage: SupabaseClient,
    config: Config,
) -> dict[str, Any]:
    business_name = form.get("business_name")
    email = form.get("email")
    incoming_business_id = form.get("business_id")

    if not incoming_business_id and config.resend_api_key:
        notify_new_submission({
            "business_name": business_name,
            "owner_name": form.get("owner_name") or form.get("name"),
            "email": email,
            "phone": form.get("phone"),
            "city": form.get("city"),
            "service_area": form.get("service_area"),
            "about": form.get("about"),
        })

    if not business_name or not email:
        raise RequestError(400, "Business name and email required.")

    is_edit = bool(incoming_business_id)
    should_regenerate = not is_edit or to_bool(form.fields.get("regenerate_ai"))

    with session_scope() as session:
        business = resolve_business(session, user, business_name, incoming_business_id)

        logo_url = upload_logo(storage, config.storage_bucket, business.id, form.file("logo")) or form.get("logo_url")
        new_attachments = upload_images(storage, config.storage_bucket, business.id, form.files_for("images"))

        existing = None
        if is_edit:
            existing = session.execute(
                select(SmallBusinessProfile).where(SmallBusinessProfile.business_id == business.id)
            ).scalar_one_or_none()

        services_json = services_for_prompt(form.get("services"))
        generated = None
        if should_regenerate:
            logger.info("Generating copy for %s", business.slug)
            generated = generate_copy(ai, config.openai_business_model, form, services_json)

        payload = build_profile_payload(
            form, user, business, generated, existing, logo_url, new_attachments, services_json
        )

        try:
            upsert(session, SmallBusinessProfile, payload, ["business_id"])
            session.flush()
        except SQLAlchemyError as exc:
            logger.error("Profile upsert failed for %s: %s", business.slug, exc)
            raise RequestError(500, "Database error")

        sync_business_row(session, business, form, payload, config.site_url)
        business_id = business.id
        slug = business.slug

    logger.info("Business profile saved: %s", slug)
    return {
        "success": True,
        "business_id": str(business_id),
        "username": slug,
        "url": f"/{slug}",
    }
