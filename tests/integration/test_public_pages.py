from __future__ import annotations

import io
import json
import re
from datetime import datetime, timezone

from PIL import Image
from sqlalchemy.orm import Session

from enoma_api.models import Business, SmallBusinessProfile


def _business(db: Session, **overrides) -> Business:
    values = {
        "name": "Joe's Plumbing",
        "slug": "joes-plumbing",
        "city": "Austin",
        "state": "TX",
        "phone": "512-555-0199",
        "primary_category": "Plumbing",
        "service_area": ["Austin", "Round Rock"],
        "facebook_url": "https://facebook.com/joes",
        "is_published": True,
        "updated_at": datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    row = Business(**values)
    db.add(row)
    db.commit()
    return row


def test_get_business_normalizes_array_columns(client, db_session: Session):
    db_session.add(
        SmallBusinessProfile(
            username="joes-plumbing",
            business_name="Joe's Plumbing",
            services={"0": {"service_name": "Drains"}, "1": {"service_name": "Heaters"}},
            testimonials='[{"name": "Ann"}]',
            attachments=None,
            service_area=["Austin"],
            town_sections="not json",
        )
    )
    db_session.commit()

    response = client.get("/api/get-business", params={"username": "joes-plumbing"})

    assert response.status_code == 200
    body = response.json()
    assert body["business_name"] == "Joe's Plumbing"
    assert body["services"] == [{"service_name": "Drains"}, {"service_name": "Heaters"}]
    assert body["testimonials"] == [{"name": "Ann"}]
    assert body["attachments"] == []
    assert body["service_area"] == ["Austin"]
    assert body["town_sections"] == []


def test_get_business_errors(client):
    assert client.get("/api/get-business").json() == {"error": "No slug provided"}
    missing = client.get("/api/get-business", params={"slug": "nobody"})
    assert missing.status_code == 404
    assert missing.json() == {"error": "Business profile not found"}


def test_get_profile_redirects_to_get_business(client):
    response = client.get("/api/get-profile", params={"username": "joes-plumbing"}, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/api/get-business?slug=joes-plumbing"


def test_profile_page_injects_seo_and_schema(client, db_session: Session):
    _business(db_session, seo_title='Joe\'s <Best> "Plumbing"')

    response = client.get(
        "/api/p",
        params={"slug": "joes-plumbing"},
        headers={"x-forwarded-host": "enoma.io", "x-forwarded-proto": "https"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert response.headers["cache-control"] == "public, max-age=0, s-maxage=300"
    page = response.text
    assert "<title>Joe&#x27;s &lt;Best&gt; &quot;Plumbing&quot;</title>" in page
    assert "Learn more about Joe&#x27;s Plumbing. Contact for pricing, availability, and quotes." in page
    assert 'href="https://enoma.io/joes-plumbing"' in page
    assert "https://enoma.io/assets/og/default-og.jpg" in page
    assert "{{" not in page

    schema_json = re.search(r'<script type="application/ld\+json">(.*?)</script></head>', page).group(1)
    schema = json.loads(schema_json)
    assert schema["@type"] == "Plumber"
    assert schema["telephone"] == "512-555-0199"
    assert schema["address"] == {
        "@type": "PostalAddress",
        "addressLocality": "Austin",
        "addressRegion": "TX",
        "addressCountry": "US",
    }
    assert schema["areaServed"][1] == {"@type": "AdministrativeArea", "name": "Round Rock"}
    assert schema["sameAs"] == ["https://facebook.com/joes"]


def test_profile_page_errors_are_plain_text(client):
    missing_slug = client.get("/api/p")
    assert missing_slug.status_code == 400
    assert missing_slug.text == "Missing slug"

    not_found = client.get("/api/p", params={"slug": "ghost"})
    assert not_found.status_code == 404
    assert not_found.text == "Not found"


def test_sitemap_lists_published_businesses(client, db_session: Session):
    _business(db_session)
    _business(db_session, name="Draft", slug="draft", is_published=False)

    response = client.get("/api/sitemap", headers={"host": "enoma.io"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert response.headers["cache-control"] == "public, max-age=0, s-maxage=3600"
    assert "<loc>https://enoma.io/joes-plumbing</loc>" in response.text
    assert "<lastmod>2026-05-01T12:00:00.000Z</lastmod>" in response.text
    assert "draft" not in response.text


def test_og_image_is_a_png_card(client, db_session: Session):
    _business(db_session, brand_color="#123456")

    response = client.get("/api/og", params={"slug": "joes-plumbing"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=86400, immutable"
    image = Image.open(io.BytesIO(response.content))
    assert image.size == (1200, 630)
    assert image.getpixel((5, 5)) == (0x12, 0x34, 0x56)


def test_og_image_unknown_slug(client):
    response = client.get("/api/og", params={"slug": "ghost"})
    assert response.status_code == 404
    assert response.text == "Not found"
