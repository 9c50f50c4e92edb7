"""
Reading-module and vocabulary persistence helpers.
"""

from __future__ import annotations

from typing import Any

from core import db

_MODULE_COLUMNS = """
    id, title, structured_content, paragraph_count, level, type, genre,
    language, admin_id, is_active, description, image_url,
    estimated_reading_time, author_first_name, author_last_name,
    created_at, updated_at
"""

_VOCABULARY_COLUMNS = "id, module_id, paragraph_index, word, description, created_at, updated_at"

# Columns a module update may touch.
UPDATABLE_MODULE_COLUMNS = frozenset(
    {
        "title",
        "structured_content",
        "paragraph_count",
        "level",
        "type",
        "genre",
        "language",
        "admin_id",
        "is_active",
        "description",
        "image_url",
        "estimated_reading_time",
        "author_first_name",
        "author_last_name",
    }
)


async def get_module(module_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_MODULE_COLUMNS} FROM reading_modules WHERE id = $1",
        module_id,
    )


async def get_active_module(module_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_MODULE_COLUMNS} FROM reading_modules WHERE id = $1 AND is_active = true",
        module_id,
    )


async def list_visible_modules(*, admin_id: str | None, limit: int | None) -> list[dict]:
    """
    Active curated modules, plus `admin_id`'s active custom modules when given.
    """
    return await db.fetch_all(
        f"""
        SELECT {_MODULE_COLUMNS}
        FROM reading_modules
        WHERE is_active = true
          AND (type = 'curated' OR ($1::uuid IS NOT NULL AND type = 'custom' AND admin_id = $1::uuid))
        ORDER BY created_at ASC
        LIMIT $2
        """,
        admin_id,
        limit,
    )


async def list_custom_modules_for_admin(admin_id: str) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_MODULE_COLUMNS}
        FROM reading_modules
        WHERE admin_id = $1 AND type = 'custom' AND is_active = true
        ORDER BY created_at DESC
        """,
        admin_id,
    )


async def count_custom_modules_for_admin(admin_id: str) -> int:
    value = await db.fetch_val(
        """
        SELECT count(*)
        FROM reading_modules
        WHERE admin_id = $1 AND type = 'custom' AND is_active = true
        """,
        admin_id,
    )
    return int(value or 0)


_INSERT_MODULE_SQL = f"""
    INSERT INTO reading_modules (
        title, structured_content, paragraph_count, level, type, genre,
        language, admin_id, is_active, description, image_url,
        estimated_reading_time, author_first_name, author_last_name
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
    RETURNING {_MODULE_COLUMNS}
"""


def _insert_args(values: dict[str, Any]) -> tuple:
    return (
        values["title"],
        values["structured_content"],
        values["paragraph_count"],
        values["level"],
        values["type"],
        values["genre"],
        values["language"],
        values.get("admin_id"),
        values.get("is_active", True),
        values.get("description"),
        values.get("image_url"),
        values.get("estimated_reading_time"),
        values.get("author_first_name"),
        values.get("author_last_name"),
    )


async def insert_module(values: dict[str, Any]) -> dict:
    row = await db.fetch_one(_INSERT_MODULE_SQL, *_insert_args(values))
    if row is None:
        raise RuntimeError("Failed to insert reading module.")
    return row


async def insert_custom_module(
    values: dict[str, Any],
    *,
    limit: int,
    subscription_id: str | None,
) -> dict | None:
    """
    Insert `values` as a custom module if the admin is still under `limit`.

    With a subscription the limit applies to its period counter, which is
    bumped in the same transaction. Without one (free tier) it applies to the
    admin's active custom modules. The subscription or profile row stays
    locked until commit, so concurrent creates for one admin are serialized.

    Returns None when the limit has been reached.
    """
    admin_id = values["admin_id"]
    async with db.transaction() as conn:
        if subscription_id is not None:
            used = await conn.fetchval(
                """
                SELECT custom_modules_created_this_period
                FROM customer_subscriptions
                WHERE id = $1
                FOR UPDATE
                """,
                subscription_id,
            )
        else:
            await conn.execute("SELECT id FROM profiles WHERE id = $1 FOR UPDATE", admin_id)
            used = await conn.fetchval(
                """
                SELECT count(*)
                FROM reading_modules
                WHERE admin_id = $1 AND type = 'custom' AND is_active = true
                """,
                admin_id,
            )
        if int(used or 0) >= limit:
            return None

        row = await conn.fetchrow(_INSERT_MODULE_SQL, *_insert_args(values))
        if subscription_id is not None:
            await conn.execute(
                """
                UPDATE customer_subscriptions
                SET custom_modules_created_this_period = custom_modules_created_this_period + 1,
                    updated_at = now()
                WHERE id = $1
                """,
                subscription_id,
            )
    return dict(row)


async def update_module(module_id: str, fields: dict[str, Any]) -> dict | None:
    unknown = set(fields) - UPDATABLE_MODULE_COLUMNS
    if unknown:
        raise ValueError(f"Unknown reading_modules columns: {sorted(unknown)}")

    columns = list(fields)
    assignments = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(columns))
    return await db.fetch_one(
        f"""
        UPDATE reading_modules
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING {_MODULE_COLUMNS}
        """,
        module_id,
        *[fields[column] for column in columns],
    )


async def soft_delete_module(module_id: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE reading_modules
        SET is_active = false, updated_at = now()
        WHERE id = $1
        RETURNING id
        """,
        module_id,
    )
    return row is not None


# Vocabulary

async def insert_vocabulary(*, module_id: str, paragraph_index: int, word: str, description: str) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO vocabulary (module_id, paragraph_index, word, description)
        VALUES ($1, $2, $3, $4)
        RETURNING {_VOCABULARY_COLUMNS}
        """,
        module_id,
        paragraph_index,
        word,
        description,
    )
    if row is None:
        raise RuntimeError("Failed to insert vocabulary entry.")
    return row


async def get_vocabulary(vocabulary_id: str) -> dict | None:
    return await db.fetch_one(
        f"SELECT {_VOCABULARY_COLUMNS} FROM vocabulary WHERE id = $1",
        vocabulary_id,
    )


async def list_vocabulary_for_module(module_id: str) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_VOCABULARY_COLUMNS}
        FROM vocabulary
        WHERE module_id = $1
        ORDER BY paragraph_index ASC, word ASC
        """,
        module_id,
    )


async def list_vocabulary_for_paragraph(module_id: str, paragraph_index: int) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {_VOCABULARY_COLUMNS}
        FROM vocabulary
        WHERE module_id = $1 AND paragraph_index = $2
        ORDER BY word ASC
        """,
        module_id,
        paragraph_index,
    )


async def update_vocabulary(vocabulary_id: str, fields: dict[str, Any]) -> dict | None:
    columns = [c for c in ("paragraph_index", "word", "description") if c in fields]
    if not columns:
        return await get_vocabulary(vocabulary_id)

    assignments = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(columns))
    return await db.fetch_one(
        f"""
        UPDATE vocabulary
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING {_VOCABULARY_COLUMNS}
        """,
        vocabulary_id,
        *[fields[column] for column in columns],
    )


async def delete_vocabulary(vocabulary_id: str) -> bool:
    row = await db.fetch_one("DELETE FROM vocabulary WHERE id = $1 RETURNING id", vocabulary_id)
    return row is not None
