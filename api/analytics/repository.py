"""
Aggregate queries behind the analytics endpoints.
"""

from __future__ import annotations

from core import db


async def get_teacher(teacher_id: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, subscription_plan::text AS subscription_plan,
               subscription_status::text AS subscription_status
        FROM profiles
        WHERE id = $1
        """,
        teacher_id,
    )


async def count_students(teacher_id: str) -> int:
    value = await db.fetch_val(
        "SELECT count(*) FROM profiles WHERE admin_id = $1 AND role = 'STUDENT'",
        teacher_id,
    )
    return int(value or 0)


async def module_stats_for_teacher(teacher_id: str) -> dict:
    row = await db.fetch_one(
        """
        SELECT count(*) AS total_modules,
               count(*) FILTER (WHERE sp.completed) AS completed_modules
        FROM student_progress sp
        JOIN profiles p ON p.id = sp.student_id
        WHERE p.admin_id = $1
        """,
        teacher_id,
    )
    return row or {"total_modules": 0, "completed_modules": 0}


async def student_exists(student_id: str) -> bool:
    value = await db.fetch_val(
        "SELECT EXISTS (SELECT 1 FROM profiles WHERE id = $1 AND role = 'STUDENT')",
        student_id,
    )
    return bool(value)


async def progress_by_day(student_id: str, days: int) -> list[dict]:
    return await db.fetch_all(
        """
        SELECT date(updated_at) AS day,
               count(*) AS modules_active,
               count(*) FILTER (WHERE completed) AS modules_completed,
               coalesce(sum(time_spent_minutes), 0) AS time_spent,
               avg(score) AS average_score,
               max(updated_at) AS last_activity
        FROM student_progress
        WHERE student_id = $1
          AND updated_at >= now() - make_interval(days => $2)
        GROUP BY date(updated_at)
        ORDER BY day ASC
        """,
        student_id,
        days,
    )


async def popular_modules(limit: int) -> list[dict]:
    return await db.fetch_all(
        """
        SELECT sp.module_id, m.title,
               count(*) AS start_count,
               count(*) FILTER (WHERE sp.completed) AS completion_count
        FROM student_progress sp
        JOIN reading_modules m ON m.id = sp.module_id
        GROUP BY sp.module_id, m.title
        ORDER BY start_count DESC, m.title ASC
        LIMIT $1
        """,
        limit,
    )


async def plan_distribution() -> list[dict]:
    return await db.fetch_all(
        """
        SELECT subscription_plan::text AS plan, count(*) AS count
        FROM profiles
        GROUP BY subscription_plan
        ORDER BY count DESC
        """
    )


async def status_distribution() -> list[dict]:
    return await db.fetch_all(
        """
        SELECT subscription_status::text AS status, count(*) AS count
        FROM profiles
        GROUP BY subscription_status
        ORDER BY count DESC
        """
    )


async def revenue_by_day(days: int) -> list[dict]:
    return await db.fetch_all(
        """
        SELECT date(created_at) AS day, sum(amount) AS total, count(*) AS count
        FROM payment_history
        WHERE created_at >= now() - make_interval(days => $1)
        GROUP BY date(created_at)
        ORDER BY day ASC
        """,
        days,
    )
