"""
Stripe API helpers.

The Stripe SDK is blocking, so every call runs in the threadpool. Results are
converted to plain dicts right away; nothing outside this module touches
StripeObject instances.
"""

from __future__ import annotations

from typing import Any, Callable

import stripe
from fastapi.concurrency import run_in_threadpool

from core import config


class StripeServiceError(RuntimeError):
    pass


def _api_key() -> str:
    key = config.stripe_secret_key()
    if not key:
        raise StripeServiceError("STRIPE_SECRET_KEY is empty.")
    return key


def _to_dict(obj: Any) -> dict[str, Any]:
    return obj.to_dict() if obj is not None else {}


async def _call(description: str, fn: Callable[..., Any], **params: Any) -> Any:
    try:
        return await run_in_threadpool(fn, api_key=_api_key(), **params)
    except stripe.StripeError as exc:
        raise StripeServiceError(f"{description}: {exc.user_message or exc}") from exc


async def list_recurring_prices() -> list[dict[str, Any]]:
    prices = await _call(
        "Failed to list prices",
        stripe.Price.list,
        active=True,
        type="recurring",
        expand=["data.product"],
        limit=100,
    )
    return [_to_dict(price) for price in prices.data]


async def create_customer(*, email: str, name: str | None, metadata: dict[str, str]) -> dict[str, Any]:
    customer = await _call(
        "Failed to create customer",
        stripe.Customer.create,
        email=email,
        name=name,
        metadata=metadata,
    )
    return _to_dict(customer)


async def create_checkout_session(
    *,
    customer_id: str,
    price_id: str,
    user_id: str,
    success_url: str,
    cancel_url: str,
) -> dict[str, Any]:
    session = await _call(
        "Failed to create checkout session",
        stripe.checkout.Session.create,
        customer=customer_id,
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=success_url,
        cancel_url=cancel_url,
        subscription_data={"metadata": {"userId": user_id}},
    )
    return _to_dict(session)


async def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> dict[str, Any]:
    subscription = await _call(
        "Failed to update subscription",
        stripe.Subscription.modify,
        id=subscription_id,
        cancel_at_period_end=cancel,
    )
    return _to_dict(subscription)


async def list_payment_intents(customer_id: str, *, limit: int = 10) -> list[dict[str, Any]]:
    intents = await _call(
        "Failed to list payments",
        stripe.PaymentIntent.list,
        customer=customer_id,
        limit=limit,
    )
    return [_to_dict(intent) for intent in intents.data]


async def create_portal_session(customer_id: str, *, return_url: str) -> dict[str, Any]:
    session = await _call(
        "Failed to create billing portal session",
        stripe.billing_portal.Session.create,
        customer=customer_id,
        return_url=return_url,
    )
    return _to_dict(session)


def construct_event(payload: bytes, signature: str) -> dict[str, Any]:
    """
    Verify a webhook payload against STRIPE_WEBHOOK_SECRET and return the event.
    """
    secret = config.stripe_webhook_secret()
    if not secret:
        raise StripeServiceError("STRIPE_WEBHOOK_SECRET is empty.")
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        raise StripeServiceError(f"Webhook Error: {exc}") from exc
    return _to_dict(event)
