"""
Stripe webhook event handling.

Handled events:
- customer.subscription.created / .updated -> upsert subscription, mirror onto profile
- customer.subscription.deleted            -> mark canceled, profile back to free
- invoice.paid                             -> record payment, reset period counter on renewals
- invoice.payment_failed                   -> record failed payment, subscription and profile past_due

Database failures propagate so Stripe sees a 5xx and retries the delivery.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import status

from core.errors import AppError

from . import repository, stripe_client
from .service import FREE_TIER

logger = logging.getLogger(__name__)

# Stripe subscription status -> profiles.subscription_status
_PROFILE_STATUS = {
    "active": "active",
    "trialing": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "paused": "canceled",
    "incomplete": "incomplete",
    "incomplete_expired": "incomplete_expired",
}


def _from_epoch(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _customer_id(obj: dict) -> str | None:
    customer = obj.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    return str(customer) if customer else None


def _invoice_subscription_id(invoice: dict) -> str | None:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        # Newer API versions nest it under the invoice parent.
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription_id = details.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    return str(subscription_id) if subscription_id else None


async def _handle_subscription_upsert(subscription: dict) -> None:
    item = _first_item(subscription)
    price_id = (item.get("price") or {}).get("id")
    subscription_id = str(subscription.get("id"))

    plan = await repository.get_plan_by_id(str(price_id)) if price_id else None
    if plan is None:
        logger.error("webhook_plan_missing subscription_id=%s price_id=%s", subscription_id, price_id)
        return

    user_id = (subscription.get("metadata") or {}).get("userId")
    customer_id = _customer_id(subscription)
    period_start = _from_epoch(subscription.get("current_period_start") or item.get("current_period_start"))
    period_end = _from_epoch(subscription.get("current_period_end") or item.get("current_period_end"))

    if not user_id:
        logger.error("webhook_missing_user subscription_id=%s", subscription_id)
        return
    if not customer_id:
        logger.error("webhook_missing_customer subscription_id=%s", subscription_id)
        return
    if period_start is None or period_end is None:
        logger.error("webhook_missing_period subscription_id=%s", subscription_id)
        return

    stripe_status = str(subscription.get("status") or "incomplete")
    await repository.upsert_subscription(
        subscription_id=subscription_id,
        user_id=str(user_id),
        plan_id=str(plan["id"]),
        stripe_customer_id=customer_id,
        status=stripe_status,
        current_period_start=period_start,
        current_period_end=period_end,
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
    )
    await repository.update_profile_billing(
        str(user_id),
        subscription_status=_PROFILE_STATUS.get(stripe_status, "incomplete"),
        subscription_plan=str(plan["tier"]),
        renewal_date=period_end,
        stripe_customer_id=customer_id,
    )
    logger.info(
        "webhook_subscription_upserted subscription_id=%s user_id=%s status=%s",
        subscription_id,
        user_id,
        stripe_status,
    )


async def _handle_subscription_deleted(subscription: dict) -> None:
    subscription_id = str(subscription.get("id"))
    row = await repository.mark_subscription_canceled(subscription_id)
    if row is None:
        logger.warning("webhook_subscription_unknown subscription_id=%s", subscription_id)
        return

    await repository.update_profile_billing(
        str(row["user_id"]),
        subscription_status="canceled",
        subscription_plan=FREE_TIER,
        renewal_date=None,
    )
    logger.info("webhook_subscription_canceled subscription_id=%s", subscription_id)


async def _handle_invoice_paid(invoice: dict) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if subscription_id is None:
        logger.info("webhook_invoice_without_subscription invoice_id=%s", invoice.get("id"))
        return

    subscription = await repository.get_subscription_by_id(subscription_id)
    if subscription is None:
        logger.warning("webhook_invoice_subscription_unknown subscription_id=%s", subscription_id)
        return

    await repository.insert_payment(
        payment_id=str(invoice.get("id")),
        user_id=str(subscription["user_id"]),
        subscription_id=subscription_id,
        amount=Decimal(invoice.get("amount_paid") or 0) / 100,
        currency=str(invoice.get("currency") or "usd"),
        status="succeeded",
        payment_method=invoice.get("collection_method"),
        receipt_url=invoice.get("hosted_invoice_url"),
    )

    if invoice.get("billing_reason") == "subscription_cycle":
        await repository.reset_period_counter(subscription_id)
        logger.info("webhook_period_counter_reset subscription_id=%s", subscription_id)


def _payment_intent_id(invoice: dict) -> str | None:
    intent = invoice.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    return str(intent) if intent else None


async def _handle_invoice_payment_failed(invoice: dict) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if subscription_id is None:
        logger.info("webhook_failed_invoice_without_subscription invoice_id=%s", invoice.get("id"))
        return

    subscription = await repository.get_subscription_by_id(subscription_id)
    if subscription is None:
        logger.warning("webhook_invoice_subscription_unknown subscription_id=%s", subscription_id)
        return

    user_id = str(subscription["user_id"])
    await repository.insert_payment(
        payment_id=_payment_intent_id(invoice) or f"failed-{invoice.get('id')}",
        user_id=user_id,
        subscription_id=subscription_id,
        amount=Decimal(invoice.get("amount_due") or 0) / 100,
        currency=str(invoice.get("currency") or "usd"),
        status="failed",
        payment_method=invoice.get("collection_method"),
        receipt_url=invoice.get("hosted_invoice_url"),
    )
    if await repository.mark_subscription_past_due(subscription_id) is not None:
        await repository.set_profile_subscription_status(user_id, "past_due")
    logger.warning("webhook_payment_failed subscription_id=%s user_id=%s", subscription_id, user_id)


async def process_webhook_event(payload: bytes, signature: str | None) -> dict:
    if not signature:
        raise AppError("Webhook Error: missing Stripe-Signature header", status.HTTP_400_BAD_REQUEST)
    try:
        event = stripe_client.construct_event(payload, signature)
    except stripe_client.StripeServiceError as exc:
        logger.error("webhook_signature_invalid error=%s", exc)
        raise AppError(str(exc), status.HTTP_400_BAD_REQUEST) from exc

    event_type = str(event.get("type") or "")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info("webhook_received type=%s id=%s", event_type, event.get("id"))

    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await _handle_subscription_upsert(obj)
    elif event_type == "customer.subscription.deleted":
        await _handle_subscription_deleted(obj)
    elif event_type == "invoice.paid":
        await _handle_invoice_paid(obj)
    elif event_type == "invoice.payment_failed":
        await _handle_invoice_payment_failed(obj)
    else:
        logger.info("webhook_unhandled type=%s", event_type)

    return {"received": True}
