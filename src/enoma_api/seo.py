"""Server-rendered SEO for public business pages: head tags, JSON-LD, sitemap."""
from __future__ import annotations

import html
import json
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape as xml_escape

from .models import Business

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "profile.html"
DEFAULT_OG_IMAGE_PATH = "/assets/og/default-og.jpg"

BUSINESS_TYPE_MAP = {
    "landscaping": "LandscapingBusiness",
    "plumber": "Plumber",
    "plumbing": "Plumber",
    "hvac": "HVACBusiness",
    "heating": "HVACBusiness",
    "electrician": "Electrician",
}


def base_url_from_headers(forwarded_proto: Optional[str], forwarded_host: Optional[str], host: Optional[str]) -> str:
    proto = forwarded_proto or "https"
    return f"{proto}://{forwarded_host or host or ''}"


@lru_cache(maxsize=4)
def load_template(path: Optional[str] = None) -> str:
    return Path(path or DEFAULT_TEMPLATE_PATH).read_text(encoding="utf-8")


def _drop_empty(mapping: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value not in (None, "")}


def local_business_schema(business: Business, canonical: str) -> dict[str, Any]:
    category = (business.primary_category or "").lower()
    schema: dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": BUSINESS_TYPE_MAP.get(category, "LocalBusiness"),
        "@id": canonical,
        "name": business.name,
        "url": canonical,
        "telephone": business.phone or None,
        "address": _drop_empty({
            "@type": "PostalAddress",
            "addressLocality": business.city or None,
            "addressRegion": business.state or None,
            "addressCountry": "US",
        }),
        "sameAs": [url for url in (business.facebook_url, business.google_maps_url) if url],
    }
    if isinstance(business.service_area, list):
        schema["areaServed"] = [
            {"@type": "AdministrativeArea", "name": area}
            for area in business.service_area
        ]
    return _drop_empty(schema)


def render_profile_page(business: Business, base_url: str, template: str) -> str:
    canonical = f"{base_url}/{quote(business.slug, safe='')}"
    title = business.seo_title or f"{business.name} — Business Profile"
    description = (
        business.seo_description
        or f"Learn more about {business.name}. Contact for pricing, availability, and quotes."
    )
    og_image = business.og_image_url or f"{base_url}{DEFAULT_OG_IMAGE_PATH}"

    replacements = {
        "{{SEO_TITLE}}": title,
        "{{SEO_DESCRIPTION}}": description,
        "{{OG_TITLE}}": title,
        "{{OG_DESCRIPTION}}": description,
        "{{OG_IMAGE}}": og_image,
        "{{CANONICAL_URL}}": canonical,
    }
    page = template
    for token, value in replacements.items():
        page = page.replace(token, html.escape(value, quote=True))

    # "</" inside a string would end the script element early
    schema_json = json.dumps(local_business_schema(business, canonical)).replace("</", "<\\/")
    return page.replace(
        "</head>",
        f'<script type="application/ld+json">{schema_json}</script></head>',
        1,
    )


def _lastmod(value: Optional[datetime]) -> str:
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_sitemap(entries: Iterable[tuple[str, Optional[datetime]]], base_url: str) -> str:
    urls = "".join(
        "\n  <url>"
        f"\n    <loc>{xml_escape(f'{base_url}/{slug}')}</loc>"
        f"\n    <lastmod>{_lastmod(updated_at)}</lastmod>"
        "\n    <changefreq>weekly</changefreq>"
        "\n    <priority>0.8</priority>"
        "\n  </url>"
        for slug, updated_at in entries
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{urls}\n</urlset>"
    )
