"""Stripe subscription billing.

Checkout creates a subscription; the webhook mirrors its lifecycle onto the
business profiles (``subscription_status``) and the ``subscriptions`` table.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..config import Config
from ..db import session_scope, upsert
from ..errors import RequestError
from ..models import SmallBusinessProfile, Subscription

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


class WebhookError(Exception):
    """Rejected webhook delivery; the message is sent back to Stripe."""


def verify_event(payload: bytes, signature: Optional[str], secret: Optional[str]) -> dict[str, Any]:
    """Check the Stripe-Signature header and return the decoded event."""
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise RequestError(500, "Webhook not configured")

    try:
        stripe.Webhook.construct_event(payload, signature or "", secret)
    except ValueError as exc:
        logger.error("Invalid webhook payload: %s", exc)
        raise WebhookError(f"Invalid payload: {exc}")
    except stripe.SignatureVerificationError as exc:
        logger.error("Webhook signature failed: %s", exc)
        raise WebhookError(str(exc))

    return json.loads(payload)


def _save_subscription(
    session,
    customer_id: str,
    status: str,
    subscription_id: Optional[str] = None,
    email: Optional[str] = None,
) -> None:
    values: dict[str, Any] = {
        "stripe_customer_id": customer_id,
        "status": status,
        "updated_at": datetime.now(timezone.utc),
    }
    if subscription_id:
        values["stripe_subscription_id"] = subscription_id
    if email:
        values["email"] = email
    upsert(session, Subscription, values, ["stripe_customer_id"])


def handle_checkout_completed(checkout: dict[str, Any]) -> None:
    email = (checkout.get("customer_details") or {}).get("email")
    customer_id = checkout.get("customer")
    logger.info("Checkout completed for %s (%s)", email, customer_id)
    if not email or not customer_id:
        return

    with session_scope() as session:
        result = session.execute(
            update(SmallBusinessProfile)
            .where(SmallBusinessProfile.email == email)
            .values(stripe_customer_id=customer_id, subscription_status="active")
        )
        _save_subscription(session, customer_id, "active", checkout.get("subscription"), email)
    logger.info("Activated %d profile(s) for %s", result.rowcount, email)


def handle_subscription_change(subscription: dict[str, Any], deleted: bool = False) -> None:
    customer_id = subscription.get("customer")
    status = subscription.get("status") or ("canceled" if deleted else None)
    logger.info("Subscription %s for %s: %s", subscription.get("id"), customer_id, status)
    if not customer_id or not status:
        return

    with session_scope() as session:
        session.execute(
            update(SmallBusinessProfile)
            .where(SmallBusinessProfile.stripe_customer_id == customer_id)
            .values(subscription_status=status)
        )
        _save_subscription(session, customer_id, status, subscription.get("id"))


def handle_event(event: dict[str, Any]) -> None:
    """Apply one verified event. Database failures are logged, never raised."""
    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}
    logger.info("Webhook received: %s", event_type)

    try:
        if event_type == "checkout.session.completed":
            handle_checkout_completed(data)
        elif event_type in SUBSCRIPTION_EVENTS:
            handle_subscription_change(data, deleted=event_type.endswith(".deleted"))
        else:
            logger.info("Unhandled event type: %s", event_type)
    except SQLAlchemyError as exc:
        logger.error("Failed to store %s: %s", event_type, exc)


def create_checkout_session(config: Config, success_url: str, cancel_url: str) -> str:
    """Start a subscription checkout for the configured price and return its URL."""
    session = stripe.checkout.Session.create(
        api_key=config.stripe_secret_key,
        mode="subscription",
        line_items=[{"price": config.stripe_price_id, "quantity": 1}],
        success_url=success_url,
        cancel_url=cancel_url,
    )
    return session.url
