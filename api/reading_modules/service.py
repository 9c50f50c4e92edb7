"""
Reading-module business logic.

Scope:
- which modules a caller may see (curated vs. an admin's custom modules)
- custom-module creation limits from the admin's plan
- ownership rules for updates, soft deletes and vocabulary
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import status

from auth.security import STUDENT_ROLE
from core.errors import AppError
from subscriptions import service as subscription_service

from . import repository, schemas

logger = logging.getLogger(__name__)

CURATED = "curated"
CUSTOM = "custom"

ANONYMOUS_CURATED_LIMIT = 3
UNASSIGNED_STUDENT_CURATED_LIMIT = 5

# Request field -> reading_modules column
_MODULE_COLUMNS = {
    "title": "title",
    "structured_content": "structured_content",
    "level": "level",
    "genre": "genre",
    "language": "language",
    "is_active": "is_active",
    "description": "description",
    "image_url": "image_url",
    "estimated_reading_time": "estimated_reading_time",
    "author_first_name": "author_first_name",
    "author_last_name": "author_last_name",
    "type": "type",
    "admin_id": "admin_id",
}

_REQUIRED_FIELDS = frozenset({"title", "structured_content", "level", "genre", "language", "is_active", "type"})


def to_module_dict(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "title": row["title"],
        "structuredContent": row.get("structured_content") or [],
        "paragraphCount": int(row.get("paragraph_count") or 0),
        "level": row["level"],
        "type": row["type"],
        "genre": row["genre"],
        "language": row["language"],
        "adminId": str(row["admin_id"]) if row.get("admin_id") else None,
        "isActive": bool(row.get("is_active", True)),
        "description": row.get("description"),
        "imageUrl": row.get("image_url"),
        "estimatedReadingTime": row.get("estimated_reading_time"),
        "authorFirstName": row.get("author_first_name"),
        "authorLastName": row.get("author_last_name"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }


def to_vocabulary_dict(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "moduleId": str(row["module_id"]),
        "paragraphIndex": int(row["paragraph_index"]),
        "word": row["word"],
        "description": row["description"],
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }


def _paragraphs_to_json(paragraphs: list[schemas.Paragraph]) -> list[dict]:
    return [{"index": p.index, "text": p.text} for p in sorted(paragraphs, key=lambda p: p.index)]


def visibility_scope(current_user: dict | None) -> tuple[str | None, int | None]:
    """
    Return (admin whose custom modules are visible, row limit) for a caller.
    """
    if current_user is None:
        return None, ANONYMOUS_CURATED_LIMIT
    if current_user["role"] == STUDENT_ROLE:
        admin_id = current_user.get("admin_id")
        if not admin_id:
            return None, UNASSIGNED_STUDENT_CURATED_LIMIT
        return admin_id, None
    return current_user["id"], None


async def get_active_modules(current_user: dict | None) -> list[dict]:
    admin_id, limit = visibility_scope(current_user)
    rows = await repository.list_visible_modules(admin_id=admin_id, limit=limit)
    return [to_module_dict(row) for row in rows]


async def get_admin_modules(admin_id: str) -> list[dict]:
    rows = await repository.list_custom_modules_for_admin(admin_id)
    return [to_module_dict(row) for row in rows]


async def _require_module(module_id: str) -> dict:
    row = await repository.get_module(module_id)
    if row is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)
    return row


async def get_module(module_id: str) -> dict:
    row = await repository.get_active_module(module_id)
    if row is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)
    return to_module_dict(row)


async def get_paragraph(module_id: str, paragraph_index: int) -> dict:
    row = await repository.get_active_module(module_id)
    if row is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)
    for paragraph in row.get("structured_content") or []:
        if int(paragraph.get("index", 0)) == paragraph_index:
            return {"index": paragraph_index, "text": paragraph.get("text", "")}
    raise AppError(f"Paragraph {paragraph_index} not found", status.HTTP_404_NOT_FOUND)


async def _check_custom_module_quota(admin_id: str) -> tuple[int, dict | None]:
    """
    Raise 403 when the admin may not create another custom module.

    Returns (limit, subscription row whose period counter is bumped by the
    insert, or None on the free tier). The insert re-checks the limit under a
    row lock.
    """
    plan, subscription = await subscription_service.get_plan_for_user(admin_id)
    limit = int(plan["custom_module_limit"])

    if plan["tier"] == subscription_service.FREE_TIER:
        if limit <= 0:
            raise AppError("Your plan does not include custom modules", status.HTTP_403_FORBIDDEN)
        created = await repository.count_custom_modules_for_admin(admin_id)
        if created >= limit:
            raise AppError(
                f"Custom module limit reached for your plan ({limit}). Upgrade to create more.",
                status.HTTP_403_FORBIDDEN,
            )
        return limit, None

    if subscription is None:
        logger.error("paid_plan_without_subscription admin_id=%s plan_id=%s", admin_id, plan["id"])
        raise AppError("Subscription record not found for paid plan")
    if int(subscription["custom_modules_created_this_period"] or 0) >= limit:
        raise AppError(
            f"Monthly custom module limit reached ({limit}). The limit resets with your next billing period.",
            status.HTTP_403_FORBIDDEN,
        )
    return limit, subscription


def _create_values(payload: schemas.ModuleCreateRequest, *, module_type: str, admin_id: str | None) -> dict:
    paragraphs = _paragraphs_to_json(payload.structured_content)
    return {
        "title": payload.title.strip(),
        "structured_content": paragraphs,
        "paragraph_count": len(paragraphs),
        "level": payload.level,
        "type": module_type,
        "genre": payload.genre,
        "language": payload.language,
        "admin_id": admin_id,
        "is_active": payload.is_active,
        "description": payload.description,
        "image_url": payload.image_url,
        "estimated_reading_time": payload.estimated_reading_time,
        "author_first_name": payload.author_first_name,
        "author_last_name": payload.author_last_name,
    }


async def create_custom_module(admin_id: str, payload: schemas.ModuleCreateRequest) -> dict:
    limit, subscription = await _check_custom_module_quota(admin_id)
    row = await repository.insert_custom_module(
        _create_values(payload, module_type=CUSTOM, admin_id=admin_id),
        limit=limit,
        subscription_id=str(subscription["id"]) if subscription is not None else None,
    )
    if row is None:
        raise AppError(f"Custom module limit reached for your plan ({limit}).", status.HTTP_403_FORBIDDEN)
    logger.info("custom_module_created admin_id=%s module_id=%s", admin_id, row["id"])
    return to_module_dict(row)


async def create_curated_module(payload: schemas.ModuleCreateRequest) -> dict:
    row = await repository.insert_module(_create_values(payload, module_type=CURATED, admin_id=None))
    logger.info("curated_module_created module_id=%s", row["id"])
    return to_module_dict(row)


def _ensure_can_modify(current_user: dict, module: dict) -> None:
    if current_user["is_super_admin"]:
        return
    if module["type"] != CUSTOM or str(module.get("admin_id")) != current_user["id"]:
        raise AppError("You do not have permission to modify this module", status.HTTP_403_FORBIDDEN)


def update_columns(current_user: dict, payload: schemas.ModuleUpdateRequest) -> dict:
    fields: dict = {}
    for name in payload.model_fields_set:
        value = getattr(payload, name)
        if name in ("type", "admin_id") and not current_user["is_super_admin"]:
            raise AppError("Only super admins can change module type or owner", status.HTTP_403_FORBIDDEN)
        if value is None and name in _REQUIRED_FIELDS:
            raise AppError(f"{name} cannot be null", status.HTTP_400_BAD_REQUEST)
        if name == "structured_content":
            value = _paragraphs_to_json(value)
            fields["paragraph_count"] = len(value)
        elif name == "admin_id" and value is not None:
            value = str(value)
        fields[_MODULE_COLUMNS[name]] = value
    return fields


async def update_module(current_user: dict, module_id: str, payload: schemas.ModuleUpdateRequest) -> dict:
    module = await _require_module(module_id)
    _ensure_can_modify(current_user, module)

    row = await repository.update_module(module_id, update_columns(current_user, payload))
    if row is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)
    logger.info("module_updated user_id=%s module_id=%s", current_user["id"], module_id)
    return to_module_dict(row)


async def delete_module(current_user: dict, module_id: str) -> None:
    module = await _require_module(module_id)
    _ensure_can_modify(current_user, module)
    await repository.soft_delete_module(module_id)
    logger.info("module_deactivated user_id=%s module_id=%s", current_user["id"], module_id)


async def _require_curated(module_id: str) -> dict:
    module = await _require_module(module_id)
    if module["type"] != CURATED:
        raise AppError("Module is not a curated module", status.HTTP_400_BAD_REQUEST)
    return module


async def update_curated_module(current_user: dict, module_id: str, payload: schemas.ModuleUpdateRequest) -> dict:
    await _require_curated(module_id)
    return await update_module(current_user, module_id, payload)


async def delete_curated_module(current_user: dict, module_id: str) -> None:
    await _require_curated(module_id)
    await delete_module(current_user, module_id)


# Vocabulary

def _ensure_vocabulary_access(current_user: dict, module: dict) -> None:
    if current_user["is_super_admin"]:
        return
    if module["type"] == CURATED:
        raise AppError("Only super admins can manage vocabulary for curated modules", status.HTTP_403_FORBIDDEN)
    if str(module.get("admin_id")) != current_user["id"]:
        raise AppError("You do not have permission to manage vocabulary for this module", status.HTTP_403_FORBIDDEN)


def _ensure_paragraph_in_range(module: dict, paragraph_index: int) -> None:
    paragraph_count = int(module.get("paragraph_count") or 0)
    if not 1 <= paragraph_index <= paragraph_count:
        raise AppError(
            f"paragraphIndex must be between 1 and {paragraph_count}",
            status.HTTP_400_BAD_REQUEST,
        )


async def add_vocabulary(current_user: dict, module_id: str, payload: schemas.VocabularyCreateRequest) -> dict:
    module = await _require_module(module_id)
    _ensure_vocabulary_access(current_user, module)
    _ensure_paragraph_in_range(module, payload.paragraph_index)

    try:
        row = await repository.insert_vocabulary(
            module_id=module_id,
            paragraph_index=payload.paragraph_index,
            word=payload.word.strip(),
            description=payload.description.strip(),
        )
    except asyncpg.UniqueViolationError as exc:
        raise AppError(
            "This word already exists for this paragraph",
            status.HTTP_409_CONFLICT,
        ) from exc
    return to_vocabulary_dict(row)


async def list_module_vocabulary(current_user: dict, module_id: str) -> list[dict]:
    module = await _require_module(module_id)
    _ensure_vocabulary_access(current_user, module)
    rows = await repository.list_vocabulary_for_module(module_id)
    return [to_vocabulary_dict(row) for row in rows]


async def list_paragraph_vocabulary(module_id: str, paragraph_index: int) -> list[dict]:
    await _require_module(module_id)
    rows = await repository.list_vocabulary_for_paragraph(module_id, paragraph_index)
    return [to_vocabulary_dict(row) for row in rows]


async def update_vocabulary(
    current_user: dict,
    vocabulary_id: str,
    payload: schemas.VocabularyUpdateRequest,
) -> dict:
    entry = await repository.get_vocabulary(vocabulary_id)
    if entry is None:
        raise AppError("Vocabulary entry not found", status.HTTP_404_NOT_FOUND)
    module = await _require_module(str(entry["module_id"]))
    _ensure_vocabulary_access(current_user, module)

    fields = {name: getattr(payload, name) for name in payload.model_fields_set}
    if any(value is None for value in fields.values()):
        raise AppError("Vocabulary fields cannot be null", status.HTTP_400_BAD_REQUEST)
    if "paragraph_index" in fields:
        _ensure_paragraph_in_range(module, fields["paragraph_index"])
    for name in ("word", "description"):
        if name in fields:
            fields[name] = fields[name].strip()

    try:
        row = await repository.update_vocabulary(vocabulary_id, fields)
    except asyncpg.UniqueViolationError as exc:
        raise AppError(
            "This word already exists for this paragraph",
            status.HTTP_409_CONFLICT,
        ) from exc
    if row is None:
        raise AppError("Vocabulary entry not found", status.HTTP_404_NOT_FOUND)
    return to_vocabulary_dict(row)


async def delete_vocabulary(current_user: dict, vocabulary_id: str) -> None:
    entry = await repository.get_vocabulary(vocabulary_id)
    if entry is None:
        # Deleting twice is not an error.
        return None
    module = await _require_module(str(entry["module_id"]))
    _ensure_vocabulary_access(current_user, module)
    await repository.delete_vocabulary(vocabulary_id)
