"""
Profile persistence helpers.
"""

from __future__ import annotations

from core import db

_PROFILE_SELECT = """
    SELECT p.id, p.role::text AS role, p.full_name, p.email, p.avatar_url,
           p.stripe_customer_id, p.subscription_status::text AS subscription_status,
           p.subscription_plan::text AS subscription_plan, p.subscription_renewal_date,
           p.admin_id, p.age, p.reading_level, p.created_at, p.updated_at,
           (
               SELECT plan.tier::text
               FROM customer_subscriptions cs
               JOIN subscription_plans plan ON plan.id = cs.plan_id
               WHERE cs.user_id = p.id
               ORDER BY cs.updated_at DESC
               LIMIT 1
           ) AS current_plan_tier,
           (
               SELECT count(*)
               FROM student_progress progress
               WHERE progress.student_id = p.id AND progress.completed = true
           ) AS completed_modules_count
    FROM profiles p
"""


async def get_profile(profile_id: str) -> dict | None:
    return await db.fetch_one(f"{_PROFILE_SELECT} WHERE p.id = $1", profile_id)


async def list_students_for_admin(admin_id: str) -> list[dict]:
    return await db.fetch_all(
        f"""
        {_PROFILE_SELECT}
        WHERE p.admin_id = $1 AND p.role = 'STUDENT'
        ORDER BY p.full_name ASC NULLS LAST, p.created_at ASC
        """,
        admin_id,
    )


async def update_profile(profile_id: str, fields: dict[str, object]) -> bool:
    """
    Update the given columns. `fields` keys are trusted column names.
    """
    if not fields:
        return False

    columns = list(fields)
    assignments = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(columns))
    row = await db.fetch_one(
        f"""
        UPDATE profiles
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING id
        """,
        profile_id,
        *[fields[column] for column in columns],
    )
    return row is not None


async def delete_profile(profile_id: str) -> bool:
    row = await db.fetch_one("DELETE FROM profiles WHERE id = $1 RETURNING id", profile_id)
    return row is not None
