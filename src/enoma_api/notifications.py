"""Transactional email via Resend.

Sends:
- the "new page request" email from the marketing site's contact form
- a heads-up to the Enoma inbox whenever a brand new business is submitted
"""
from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from .config import load_config

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


def _value(raw: Any, default: str = "—") -> str:
    text = str(raw).strip() if raw is not None else ""
    return html.escape(text) if text else default


def send_email(
    to: list[str],
    subject: str,
    html_body: str,
    reply_to: Optional[str] = None,
    sender: Optional[str] = None,
) -> bool:
    """Send one email through Resend.

    Returns True if sent, False if not configured or failed.
    """
    config = load_config()
    if not config.resend_api_key:
        logger.warning("RESEND_API_KEY not set; skipping email %r", subject)
        return False

    payload: dict[str, Any] = {
        "from": sender or config.email_from,
        "to": to,
        "subject": subject,
        "html": html_body,
    }
    if reply_to:
        payload["reply_to"] = reply_to

    try:
        resp = requests.post(
            RESEND_EMAILS_URL,
            json=payload,
            headers={"Authorization": f"Bearer {config.resend_api_key}"},
            timeout=config.http_timeout,
        )
        if resp.ok:
            logger.debug("Email sent: %s", subject)
            return True
        logger.warning("Resend returned %d: %s", resp.status_code, resp.text[:200])
        return False
    except requests.RequestException as exc:
        logger.warning("Resend email failed: %s", exc)
        return False


def send_page_request(
    name: str,
    email: str,
    business_name: str,
    city: str,
    industry: Optional[str] = None,
    plan: Optional[str] = None,
) -> bool:
    """Forward a marketing-site page request to the Enoma inbox."""
    config = load_config()
    body = (
        "<h2>New Enoma Business Page Request</h2>"
        f"<p><strong>Name:</strong> {_value(name)}</p>"
        f"<p><strong>Email:</strong> {_value(email)}</p>"
        f"<p><strong>Business Name:</strong> {_value(business_name)}</p>"
        f"<p><strong>City &amp; State:</strong> {_value(city)}</p>"
        f"<p><strong>Industry:</strong> {_value(industry, 'Not provided')}</p>"
        f"<p><strong>Plan:</strong> {_value(plan, 'default')}</p>"
    )
    return send_email(
        to=[config.notify_email],
        subject=f"New Enoma page request — {business_name}",
        html_body=body,
        reply_to=email,
        sender="Enoma <no-reply@enoma.io>",
    )


def notify_new_submission(fields: dict[str, Any]) -> bool:
    """Tell the Enoma inbox about a first-time business submission."""
    config = load_config()
    business_name = fields.get("business_name")
    submitted_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    body = (
        "<h2>New Business Submission</h2>"
        f"<p><strong>Business:</strong> {_value(business_name)}</p>"
        f"<p><strong>Owner:</strong> {_value(fields.get('owner_name'))}</p>"
        f"<p><strong>Email:</strong> {_value(fields.get('email'))}</p>"
        f"<p><strong>Phone:</strong> {_value(fields.get('phone'))}</p>"
        f"<p><strong>City:</strong> {_value(fields.get('city'))}</p>"
        f"<p><strong>Service Areas:</strong> {_value(fields.get('service_area'))}</p>"
        f"<p><strong>Submitted at:</strong> {submitted_at}</p>"
        "<hr />"
        "<p><strong>Raw About Notes:</strong></p>"
        f"<pre style=\"white-space:pre-wrap\">{_value(fields.get('about'))}</pre>"
    )
    return send_email(
        to=[config.notify_email],
        subject=f"New Enoma submission: {business_name or 'Unknown business'}",
        html_body=body,
        reply_to=fields.get("email") or None,
    )
