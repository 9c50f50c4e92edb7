"""
Student-progress persistence helpers.
"""

from __future__ import annotations

from typing import Any

from core import db

_PROGRESS_COLUMNS = """
    id, student_id, module_id, completed, score, highest_paragraph_index_reached,
    final_summary, started_at, completed_at, time_spent_minutes,
    teacher_feedback, teacher_feedback_at, created_at, updated_at
"""

_SUBMISSION_COLUMNS = """
    id, student_progress_id, paragraph_index, paragraph_summary,
    cumulative_summary, submitted_at, created_at, updated_at
"""


def _qualified(columns: str, alias: str) -> str:
    return ", ".join(f"{alias}.{c.strip()}" for c in columns.split(",") if c.strip())


async def get_student(student_id: str) -> dict | None:
    return await db.fetch_one(
        """
        SELECT id, admin_id, full_name
        FROM profiles
        WHERE id = $1 AND role = 'STUDENT'
        """,
        student_id,
    )


async def get_module(module_id: str) -> dict | None:
    return await db.fetch_one(
        "SELECT id, title, paragraph_count, is_active FROM reading_modules WHERE id = $1",
        module_id,
    )


async def get_progress(student_id: str, module_id: str) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {_PROGRESS_COLUMNS}
        FROM student_progress
        WHERE student_id = $1 AND module_id = $2
        """,
        student_id,
        module_id,
    )


async def get_progress_by_id(progress_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_PROGRESS_COLUMNS} FROM student_progress WHERE id = $1",
        progress_id,
    )


async def insert_progress(student_id: str, module_id: str) -> dict | None:
    """
    Returns None when a concurrent request created the row first.
    """
    return await db.fetch_one(
        f"""
        INSERT INTO student_progress (
            student_id, module_id, started_at, completed, highest_paragraph_index_reached
        )
        VALUES ($1, $2, now(), false, 0)
        ON CONFLICT (student_id, module_id) DO NOTHING
        RETURNING {_PROGRESS_COLUMNS}
        """,
        student_id,
        module_id,
    )


async def record_submission(
    *,
    progress_id: str,
    paragraph_index: int,
    paragraph_summary: str,
    cumulative_summary: str,
    completes_module: bool,
) -> tuple[dict, dict]:
    """
    Insert the paragraph submission and advance the progress row atomically.

    Returns (submission row, updated progress row).
    """
    async with db.transaction() as conn:
        submission = await conn.fetchrow(
            f"""
            INSERT INTO paragraph_submissions (
                student_progress_id, paragraph_index, paragraph_summary,
                cumulative_summary, submitted_at
            )
            VALUES ($1, $2, $3, $4, now())
            RETURNING {_SUBMISSION_COLUMNS}
            """,
            progress_id,
            paragraph_index,
            paragraph_summary,
            cumulative_summary,
        )
        progress = await conn.fetchrow(
            f"""
            UPDATE student_progress
            SET highest_paragraph_index_reached = GREATEST(highest_paragraph_index_reached, $2),
                completed = completed OR $3,
                completed_at = CASE WHEN $3 AND completed_at IS NULL THEN now() ELSE completed_at END,
                final_summary = CASE WHEN $3 THEN $4 ELSE final_summary END,
                updated_at = now()
            WHERE id = $1
            RETURNING {_PROGRESS_COLUMNS}
            """,
            progress_id,
            paragraph_index,
            completes_module,
            cumulative_summary,
        )
    return dict(submission), dict(progress)


async def list_submissions(progress_id: str) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_SUBMISSION_COLUMNS}
        FROM paragraph_submissions
        WHERE student_progress_id = $1
        ORDER BY paragraph_index ASC
        """,
        progress_id,
    )


async def list_progress_for_student(student_id: str) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_qualified(_PROGRESS_COLUMNS, "sp")},
               m.title AS module_title, m.paragraph_count AS module_paragraph_count
        FROM student_progress sp
        JOIN reading_modules m ON m.id = sp.module_id
        WHERE sp.student_id = $1
        ORDER BY sp.updated_at DESC
        """,
        student_id,
    )


async def list_progress_for_module(module_id: str, *, admin_id: str | None) -> list[dict]:
    """
    Progress rows for a module; restricted to `admin_id`'s students when given.
    """
    return await db.fetch_all(
        f"""
        SELECT {_qualified(_PROGRESS_COLUMNS, "sp")},
               p.full_name AS student_name
        FROM student_progress sp
        JOIN profiles p ON p.id = sp.student_id
        WHERE sp.module_id = $1
          AND ($2::uuid IS NULL OR p.admin_id = $2::uuid)
        ORDER BY p.full_name ASC NULLS LAST
        """,
        module_id,
        admin_id,
    )


async def update_progress_review(progress_id: str, fields: dict[str, Any]) -> dict | None:
    """
    Apply teacher review fields: score, teacher_feedback, completed.
    """
    return await db.fetch_one(
        f"""
        UPDATE student_progress
        SET score = CASE WHEN $2::boolean THEN $3::integer ELSE score END,
            teacher_feedback = CASE WHEN $4::boolean THEN $5::text ELSE teacher_feedback END,
            teacher_feedback_at = CASE WHEN $4 THEN now() ELSE teacher_feedback_at END,
            completed = COALESCE($6::boolean, completed),
            completed_at = CASE
                WHEN $6 IS TRUE AND NOT completed THEN now()
                WHEN $6 IS FALSE THEN NULL
                ELSE completed_at
            END,
            updated_at = now()
        WHERE id = $1
        RETURNING {_PROGRESS_COLUMNS}
        """,
        progress_id,
        "score" in fields,
        fields.get("score"),
        "teacher_feedback" in fields,
        fields.get("teacher_feedback"),
        fields.get("completed"),
    )
