"""
Subscription persistence helpers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from core import db

_PLAN_COLUMNS = """
    id, name, description, price, "interval", tier, student_limit,
    module_limit, custom_module_limit, is_active, created_at, updated_at
"""

_SUBSCRIPTION_COLUMNS = """
    id, user_id, plan_id, stripe_customer_id, status, current_period_start,
    current_period_end, cancel_at_period_end, custom_modules_created_this_period,
    created_at, updated_at
"""


async def list_active_plans() -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_PLAN_COLUMNS}
        FROM subscription_plans
        WHERE is_active = true
        ORDER BY price ASC, name ASC
        """
    )


async def get_plan_by_id(plan_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_PLAN_COLUMNS} FROM subscription_plans WHERE id = $1",
        plan_id,
    )


async def get_free_plan() -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_PLAN_COLUMNS}
        FROM subscription_plans
        WHERE tier = 'free'
        ORDER BY is_active DESC, created_at ASC
        LIMIT 1
        """
    )


async def upsert_plan(
    *,
    plan_id: str,
    name: str,
    description: str | None,
    price: Decimal,
    interval: str,
    tier: str,
    student_limit: int,
    module_limit: int,
    custom_module_limit: int,
    is_active: bool,
) -> None:
    await db.execute(
        """
        INSERT INTO subscription_plans (
            id, name, description, price, "interval", tier,
            student_limit, module_limit, custom_module_limit, is_active
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        ON CONFLICT (id) DO UPDATE
            SET name = EXCLUDED.name,
                description = EXCLUDED.description,
                price = EXCLUDED.price,
                "interval" = EXCLUDED."interval",
                tier = EXCLUDED.tier,
                student_limit = EXCLUDED.student_limit,
                module_limit = EXCLUDED.module_limit,
                custom_module_limit = EXCLUDED.custom_module_limit,
                is_active = EXCLUDED.is_active,
                updated_at = now()
        """,
        plan_id,
        name,
        description,
        price,
        interval,
        tier,
        student_limit,
        module_limit,
        custom_module_limit,
        is_active,
    )


async def get_subscription_for_user(user_id: str) -> dict | None:
    # One row per user is the norm; prefer the most recently touched one otherwise.
    return await db.fetch_one(
        f"""
        SELECT {_SUBSCRIPTION_COLUMNS}
        FROM customer_subscriptions
        WHERE user_id = $1
        ORDER BY updated_at DESC
        LIMIT 1
        """,
        user_id,
    )


async def get_subscription_by_id(subscription_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_SUBSCRIPTION_COLUMNS} FROM customer_subscriptions WHERE id = $1",
        subscription_id,
    )


async def upsert_subscription(
    *,
    subscription_id: str,
    user_id: str,
    plan_id: str,
    stripe_customer_id: str,
    status: str,
    current_period_start: datetime,
    current_period_end: datetime,
    cancel_at_period_end: bool,
) -> None:
    await db.execute(
        """
        INSERT INTO customer_subscriptions (
            id, user_id, plan_id, stripe_customer_id, status,
            current_period_start, current_period_end, cancel_at_period_end,
            custom_modules_created_this_period
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, 0)
        ON CONFLICT (id) DO UPDATE
            SET plan_id = EXCLUDED.plan_id,
                status = EXCLUDED.status,
                current_period_start = EXCLUDED.current_period_start,
                current_period_end = EXCLUDED.current_period_end,
                cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                updated_at = now()
        """,
        subscription_id,
        user_id,
        plan_id,
        stripe_customer_id,
        status,
        current_period_start,
        current_period_end,
        cancel_at_period_end,
    )


async def mark_subscription_canceled(subscription_id: str) -> dict | None:
    return await db.fetch_one(
        """
        UPDATE customer_subscriptions
        SET status = 'canceled', updated_at = now()
        WHERE id = $1
        RETURNING id, user_id
        """,
        subscription_id,
    )


async def mark_subscription_past_due(subscription_id: str) -> dict | None:
    return await db.fetch_one(
        """
        UPDATE customer_subscriptions
        SET status = 'past_due', updated_at = now()
        WHERE id = $1 AND status <> 'canceled'
        RETURNING id, user_id
        """,
        subscription_id,
    )


async def reset_period_counter(subscription_id: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE customer_subscriptions
        SET custom_modules_created_this_period = 0, updated_at = now()
        WHERE id = $1
        RETURNING id
        """,
        subscription_id,
    )
    return row is not None


async def get_billing_profile(user_id: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, role::text AS role, email, full_name, stripe_customer_id
        FROM profiles
        WHERE id = $1
        """,
        user_id,
    )


async def set_profile_stripe_customer(user_id: str, stripe_customer_id: str) -> None:
    await db.execute(
        "UPDATE profiles SET stripe_customer_id = $2, updated_at = now() WHERE id = $1",
        user_id,
        stripe_customer_id,
    )


async def update_profile_billing(
    user_id: str,
    *,
    subscription_status: str,
    subscription_plan: str,
    renewal_date: datetime | None,
    stripe_customer_id: str | None = None,
) -> None:
    await db.execute(
        """
        UPDATE profiles
        SET subscription_status = $2,
            subscription_plan = $3,
            subscription_renewal_date = $4,
            stripe_customer_id = COALESCE($5, stripe_customer_id),
            updated_at = now()
        WHERE id = $1
        """,
        user_id,
        subscription_status,
        subscription_plan,
        renewal_date,
        stripe_customer_id,
    )


async def set_profile_subscription_status(user_id: str, subscription_status: str) -> None:
    await db.execute(
        "UPDATE profiles SET subscription_status = $2, updated_at = now() WHERE id = $1",
        user_id,
        subscription_status,
    )


async def insert_payment(
    *,
    payment_id: str,
    user_id: str,
    subscription_id: str | None,
    amount: Decimal,
    currency: str,
    status: str,
    payment_method: str | None,
    receipt_url: str | None,
) -> None:
    await db.execute(
        """
        INSERT INTO payment_history (
            id, user_id, subscription_id, amount, currency, status, payment_method, receipt_url
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        ON CONFLICT (id) DO NOTHING
        """,
        payment_id,
        user_id,
        subscription_id,
        amount,
        currency,
        status,
        payment_method,
        receipt_url,
    )
