"""
Subscription business logic.

Scope:
- plan catalog (mirrored from Stripe prices into `subscription_plans`)
- the plan that currently governs a user's limits
- checkout, billing portal, cancel/reactivate through Stripe
"""

from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import status

from core import config
from core.errors import AppError

from . import repository, stripe_client

logger = logging.getLogger(__name__)

PLAN_TIERS = ("free", "home", "pro")
FREE_TIER = "free"

# Subscription states whose plan still governs limits.
LIMIT_BEARING_STATUSES = frozenset({"active", "trialing", "past_due"})

DEFAULT_STUDENT_LIMIT = 3
DEFAULT_MODULE_LIMIT = 3
DEFAULT_CUSTOM_MODULE_LIMIT = 1

# Used when no free plan row has been synced from Stripe yet.
BUILTIN_FREE_PLAN = {
    "id": "free",
    "name": "Free",
    "description": None,
    "price": Decimal("0"),
    "interval": "month",
    "tier": FREE_TIER,
    "student_limit": DEFAULT_STUDENT_LIMIT,
    "module_limit": DEFAULT_MODULE_LIMIT,
    "custom_module_limit": DEFAULT_CUSTOM_MODULE_LIMIT,
    "is_active": True,
    "created_at": None,
    "updated_at": None,
}


def plan_to_dict(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "name": row["name"],
        "description": row.get("description"),
        "price": float(row.get("price") or 0),
        "interval": row.get("interval") or "month",
        "tier": row["tier"],
        "studentLimit": int(row["student_limit"]),
        "moduleLimit": int(row["module_limit"]),
        "customModuleLimit": int(row["custom_module_limit"]),
        "isActive": bool(row.get("is_active", True)),
    }


def subscription_to_dict(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "userId": str(row["user_id"]),
        "planId": str(row["plan_id"]),
        "stripeCustomerId": row["stripe_customer_id"],
        "status": row["status"],
        "currentPeriodStart": row["current_period_start"],
        "currentPeriodEnd": row["current_period_end"],
        "cancelAtPeriodEnd": bool(row["cancel_at_period_end"]),
        "customModulesCreatedThisPeriod": int(row["custom_modules_created_this_period"] or 0),
    }


def _metadata_int(metadata: dict, key: str, default: int) -> int:
    try:
        return int(metadata.get(key) or default)
    except (TypeError, ValueError):
        return default


def plan_fields_from_price(price: dict) -> dict | None:
    """
    Map an expanded Stripe price to `subscription_plans` columns.

    Returns None for prices that cannot be offered (inactive, product missing
    or deleted).
    """
    product = price.get("product")
    if not price.get("active") or not isinstance(product, dict) or product.get("deleted"):
        return None

    metadata = product.get("metadata") or {}
    tier = metadata.get("tier") or FREE_TIER
    if tier not in PLAN_TIERS:
        logger.warning("stripe_invalid_tier product_id=%s tier=%s", product.get("id"), tier)
        tier = FREE_TIER

    unit_amount = price.get("unit_amount") or 0
    recurring = price.get("recurring") or {}
    return {
        "plan_id": str(price["id"]),
        "name": product.get("name") or str(price["id"]),
        "description": product.get("description"),
        "price": Decimal(unit_amount) / 100,
        "interval": recurring.get("interval") or "month",
        "tier": tier,
        "student_limit": _metadata_int(metadata, "studentLimit", DEFAULT_STUDENT_LIMIT),
        "module_limit": _metadata_int(metadata, "moduleLimit", DEFAULT_MODULE_LIMIT),
        "custom_module_limit": _metadata_int(metadata, "customModuleLimit", DEFAULT_CUSTOM_MODULE_LIMIT),
        "is_active": True,
    }


async def sync_plans_from_stripe() -> int:
    try:
        prices = await stripe_client.list_recurring_prices()
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_plan_sync_failed error=%s", exc)
        raise AppError("Failed to sync subscription plans", status.HTTP_502_BAD_GATEWAY) from exc

    synced = 0
    for price in prices:
        fields = plan_fields_from_price(price)
        if fields is None:
            continue
        await repository.upsert_plan(**fields)
        synced += 1
    logger.info("stripe_plan_sync_complete synced=%s", synced)
    return synced


async def get_plans() -> list[dict]:
    rows = await repository.list_active_plans()
    if not rows:
        await sync_plans_from_stripe()
        rows = await repository.list_active_plans()
    return [plan_to_dict(row) for row in rows]


async def get_plan_for_user(user_id: str) -> tuple[dict, dict | None]:
    """
    Return (plan row, subscription row or None) governing `user_id`'s limits.

    Users without a live subscription fall back to the free plan row, or the
    built-in free plan when none was synced.
    """
    subscription = await repository.get_subscription_for_user(user_id)
    if subscription is not None and subscription["status"] in LIMIT_BEARING_STATUSES:
        plan = await repository.get_plan_by_id(str(subscription["plan_id"]))
        if plan is not None:
            return plan, subscription
        logger.warning("subscription_plan_missing user_id=%s plan_id=%s", user_id, subscription["plan_id"])

    free_plan = await repository.get_free_plan()
    return (free_plan or BUILTIN_FREE_PLAN), None


async def get_current_subscription(user_id: str) -> dict:
    subscription = await repository.get_subscription_for_user(user_id)
    if subscription is None:
        free_plan = await repository.get_free_plan()
        if free_plan is None:
            raise AppError("No free plan found", status.HTTP_404_NOT_FOUND)
        return {"plan": plan_to_dict(free_plan), "subscription": None}

    plan = await repository.get_plan_by_id(str(subscription["plan_id"]))
    if plan is None:
        raise AppError("Subscription plan not found", status.HTTP_404_NOT_FOUND)
    return {"plan": plan_to_dict(plan), "subscription": subscription_to_dict(subscription)}


async def _ensure_stripe_customer(user_id: str, profile: dict, subscription: dict | None) -> str:
    if subscription is not None and subscription.get("stripe_customer_id"):
        return str(subscription["stripe_customer_id"])
    if profile.get("stripe_customer_id"):
        return str(profile["stripe_customer_id"])

    email = profile.get("email") or f"user+{user_id}@noteearly.com"
    try:
        customer = await stripe_client.create_customer(
            email=email,
            name=profile.get("full_name"),
            metadata={"userId": user_id},
        )
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_customer_create_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to create checkout session", status.HTTP_502_BAD_GATEWAY) from exc

    customer_id = str(customer["id"])
    await repository.set_profile_stripe_customer(user_id, customer_id)
    logger.info("stripe_customer_created user_id=%s customer_id=%s", user_id, customer_id)
    return customer_id


async def create_checkout_session(user_id: str, plan_id: str) -> dict:
    plan = await repository.get_plan_by_id(plan_id)
    if plan is None:
        raise AppError("Subscription plan not found", status.HTTP_404_NOT_FOUND)

    profile = await repository.get_billing_profile(user_id)
    if profile is None:
        raise AppError("User not found", status.HTTP_404_NOT_FOUND)

    subscription = await repository.get_subscription_for_user(user_id)
    if (
        subscription is not None
        and str(subscription["plan_id"]) == plan_id
        and subscription["status"] in {"active", "trialing"}
    ):
        raise AppError("User is already actively subscribed to this plan", status.HTTP_400_BAD_REQUEST)

    customer_id = await _ensure_stripe_customer(user_id, profile, subscription)
    client_url = config.client_url()
    try:
        session = await stripe_client.create_checkout_session(
            customer_id=customer_id,
            price_id=plan_id,
            user_id=user_id,
            success_url=f"{client_url}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{client_url}/subscription/cancel",
        )
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_checkout_failed user_id=%s plan_id=%s error=%s", user_id, plan_id, exc)
        raise AppError("Failed to create checkout session", status.HTTP_502_BAD_GATEWAY) from exc

    return {"sessionId": session.get("id"), "url": session.get("url")}


async def create_portal_session(user_id: str) -> dict:
    profile = await repository.get_billing_profile(user_id)
    if profile is None:
        raise AppError("User profile not found", status.HTTP_404_NOT_FOUND)
    if profile["role"] == "STUDENT":
        raise AppError("Students cannot manage subscriptions", status.HTTP_403_FORBIDDEN)
    if not profile.get("stripe_customer_id"):
        raise AppError("Stripe customer ID not found for this user", status.HTTP_404_NOT_FOUND)

    try:
        session = await stripe_client.create_portal_session(
            str(profile["stripe_customer_id"]),
            return_url=f"{config.frontend_url()}/admin/settings/subscription",
        )
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_portal_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to create customer portal session", status.HTTP_502_BAD_GATEWAY) from exc
    return {"url": session.get("url")}


async def cancel_subscription(user_id: str) -> dict:
    subscription = await repository.get_subscription_for_user(user_id)
    if subscription is None:
        raise AppError("No active subscription found", status.HTTP_404_NOT_FOUND)
    if subscription["status"] != "active":
        raise AppError("Subscription is not active", status.HTTP_400_BAD_REQUEST)

    try:
        updated = await stripe_client.set_cancel_at_period_end(str(subscription["id"]), True)
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_cancel_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to cancel subscription", status.HTTP_502_BAD_GATEWAY) from exc

    logger.info("subscription_cancel_requested user_id=%s subscription_id=%s", user_id, subscription["id"])
    return {"id": updated.get("id"), "status": updated.get("status"), "cancelAtPeriodEnd": True}


async def reactivate_subscription(user_id: str) -> dict:
    subscription = await repository.get_subscription_for_user(user_id)
    if subscription is None:
        raise AppError("No subscription found for user", status.HTTP_404_NOT_FOUND)
    if subscription["status"] != "active" or not subscription["cancel_at_period_end"]:
        raise AppError("Subscription cannot be reactivated", status.HTTP_400_BAD_REQUEST)

    try:
        updated = await stripe_client.set_cancel_at_period_end(str(subscription["id"]), False)
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_reactivate_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to reactivate subscription", status.HTTP_502_BAD_GATEWAY) from exc

    logger.info("subscription_reactivated user_id=%s subscription_id=%s", user_id, subscription["id"])
    return {"id": updated.get("id"), "status": updated.get("status"), "cancelAtPeriodEnd": False}


async def get_payment_history(user_id: str) -> list[dict]:
    subscription = await repository.get_subscription_for_user(user_id)
    customer_id = subscription.get("stripe_customer_id") if subscription is not None else None
    if not customer_id:
        logger.info("payment_history_no_customer user_id=%s", user_id)
        return []

    try:
        intents = await stripe_client.list_payment_intents(str(customer_id))
    except stripe_client.StripeServiceError as exc:
        logger.error("stripe_payments_failed user_id=%s error=%s", user_id, exc)
        raise AppError("Failed to fetch payment history", status.HTTP_502_BAD_GATEWAY) from exc

    return [
        {
            "id": intent.get("id"),
            "amount": (intent.get("amount") or 0) / 100,
            "currency": intent.get("currency"),
            "status": intent.get("status"),
            "created": intent.get("created"),
            "description": intent.get("description"),
        }
        for intent in intents
    ]
