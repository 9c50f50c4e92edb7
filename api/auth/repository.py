"""
Auth persistence helpers (profiles table).
"""

from __future__ import annotations

from core import db

from .security import ADMIN_ROLE, STUDENT_ROLE

_PROFILE_COLUMNS = """
    id, role, full_name, email, avatar_url, stripe_customer_id,
    subscription_status, subscription_plan, subscription_renewal_date,
    pin, admin_id, age, reading_level, created_at, updated_at
"""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def get_profile_by_id(profile_id: str) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_PROFILE_COLUMNS}
        FROM profiles
        WHERE id = $1
        """,
        profile_id,
    )


async def get_profile_role(profile_id: str) -> str | None:
    return await db.fetch_val("SELECT role::text FROM profiles WHERE id = $1", profile_id)


async def upsert_admin_profile(*, user_id: str, email: str, full_name: str) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO profiles (id, role, email, full_name)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (id) DO UPDATE
            SET full_name = COALESCE(profiles.full_name, EXCLUDED.full_name),
                updated_at = now()
        RETURNING {_PROFILE_COLUMNS}
        """,
        user_id,
        ADMIN_ROLE,
        normalize_email(email),
        full_name,
    )
    if row is None:
        raise RuntimeError("Failed to upsert admin profile.")
    return row


async def count_students_for_admin(admin_id: str) -> int:
    value = await db.fetch_val(
        "SELECT count(*) FROM profiles WHERE admin_id = $1 AND role = $2",
        admin_id,
        STUDENT_ROLE,
    )
    return int(value or 0)


async def create_student(
    *,
    admin_id: str,
    full_name: str,
    pin_hash: str,
    age: int,
    reading_level: int | None,
) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO profiles (role, full_name, pin, admin_id, age, reading_level)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING {_PROFILE_COLUMNS}
        """,
        STUDENT_ROLE,
        full_name,
        pin_hash,
        admin_id,
        age,
        reading_level,
    )
    if row is None:
        raise RuntimeError("Failed to create student profile.")
    return row


async def update_student_pin(student_id: str, pin_hash: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE profiles
        SET pin = $2, updated_at = now()
        WHERE id = $1 AND role = $3
        RETURNING id
        """,
        student_id,
        pin_hash,
        STUDENT_ROLE,
    )
    return row is not None
