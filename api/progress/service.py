"""
Student progress through reading modules.

Students start a module, then submit one summary per paragraph. The submission
for the last paragraph completes the module and stores the cumulative summary
as the final one. Admins review the progress of the students they manage.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import status

from core.errors import AppError

from . import repository, schemas

logger = logging.getLogger(__name__)


def to_progress_dict(row: dict) -> dict:
    data = {
        "id": str(row["id"]),
        "studentId": str(row["student_id"]),
        "moduleId": str(row["module_id"]),
        "completed": bool(row["completed"]),
        "score": row.get("score"),
        "highestParagraphIndexReached": int(row.get("highest_paragraph_index_reached") or 0),
        "finalSummary": row.get("final_summary"),
        "startedAt": row.get("started_at"),
        "completedAt": row.get("completed_at"),
        "timeSpentMinutes": row.get("time_spent_minutes"),
        "teacherFeedback": row.get("teacher_feedback"),
        "teacherFeedbackAt": row.get("teacher_feedback_at"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }
    if "module_title" in row:
        data["moduleTitle"] = row["module_title"]
        data["moduleParagraphCount"] = row.get("module_paragraph_count")
    if "student_name" in row:
        data["studentName"] = row["student_name"]
    return data


def to_submission_dict(row: dict) -> dict:
    return {
        "id": str(row["id"]),
        "studentProgressId": str(row["student_progress_id"]),
        "paragraphIndex": int(row["paragraph_index"]),
        "paragraphSummary": row["paragraph_summary"],
        "cumulativeSummary": row["cumulative_summary"],
        "submittedAt": row.get("submitted_at"),
    }


async def start_progress(student_id: str, module_id: str) -> tuple[dict, bool]:
    """
    Return (progress, created). Starting an already-started module is a no-op.
    """
    existing = await repository.get_progress(student_id, module_id)
    if existing is not None:
        return to_progress_dict(existing), False

    if await repository.get_student(student_id) is None:
        raise AppError("Student not found", status.HTTP_404_NOT_FOUND)
    if await repository.get_module(module_id) is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)

    row = await repository.insert_progress(student_id, module_id)
    if row is None:
        row = await repository.get_progress(student_id, module_id)
        if row is None:
            raise AppError("Failed to start progress tracking")
        return to_progress_dict(row), False

    logger.info("progress_started student_id=%s module_id=%s", student_id, module_id)
    return to_progress_dict(row), True


async def submit_summary(student_id: str, payload: schemas.SubmitSummaryRequest) -> tuple[dict, str]:
    module_id = str(payload.module_id)
    progress = await repository.get_progress(student_id, module_id)
    if progress is None:
        raise AppError("Progress record not found. Start the module first.", status.HTTP_404_NOT_FOUND)
    if progress["completed"]:
        raise AppError("Module already completed", status.HTTP_400_BAD_REQUEST)

    module = await repository.get_module(module_id)
    if module is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)

    paragraph_count = int(module["paragraph_count"] or 0)
    if payload.paragraph_index > paragraph_count:
        raise AppError(
            f"Paragraph index {payload.paragraph_index} exceeds module paragraph count {paragraph_count}",
            status.HTTP_400_BAD_REQUEST,
        )

    completes_module = payload.paragraph_index >= paragraph_count
    try:
        submission, updated = await repository.record_submission(
            progress_id=str(progress["id"]),
            paragraph_index=payload.paragraph_index,
            paragraph_summary=payload.paragraph_summary,
            cumulative_summary=payload.cumulative_summary,
            completes_module=completes_module,
        )
    except asyncpg.UniqueViolationError as exc:
        raise AppError(
            f"Summary for paragraph {payload.paragraph_index} already submitted",
            status.HTTP_409_CONFLICT,
        ) from exc

    logger.info(
        "summary_submitted student_id=%s module_id=%s paragraph_index=%s completed=%s",
        student_id,
        module_id,
        payload.paragraph_index,
        updated["completed"],
    )

    message = f"Summary for paragraph {submission['paragraph_index']} submitted successfully."
    if updated["completed"]:
        message += " Module completed!"
    data = {
        "submissionId": str(submission["id"]),
        "progressStatus": {
            "completed": bool(updated["completed"]),
            "highestParagraphIndexReached": updated["highest_paragraph_index_reached"],
            "finalSummary": updated["final_summary"],
        },
    }
    return data, message


async def _progress_details(student_id: str, module_id: str) -> dict:
    progress = await repository.get_progress(student_id, module_id)
    if progress is None:
        return {"progress": None, "submissions": []}
    submissions = await repository.list_submissions(str(progress["id"]))
    return {
        "progress": to_progress_dict(progress),
        "submissions": [to_submission_dict(row) for row in submissions],
    }


async def get_progress_details(student_id: str, module_id: str) -> dict:
    return await _progress_details(student_id, module_id)


async def get_my_progress(student_id: str) -> list[dict]:
    if await repository.get_student(student_id) is None:
        raise AppError("Student not found", status.HTTP_404_NOT_FOUND)
    rows = await repository.list_progress_for_student(student_id)
    return [to_progress_dict(row) for row in rows]


# Admin review

async def _get_managed_student(current_user: dict, student_id: str) -> dict:
    student = await repository.get_student(student_id)
    if student is None:
        raise AppError("Student not found", status.HTTP_404_NOT_FOUND)
    if not current_user["is_super_admin"] and str(student.get("admin_id")) != current_user["id"]:
        raise AppError("You do not manage this student", status.HTTP_403_FORBIDDEN)
    return student


async def update_progress(
    current_user: dict,
    progress_id: str,
    payload: schemas.AdminProgressUpdateRequest,
) -> dict:
    progress = await repository.get_progress_by_id(progress_id)
    if progress is None:
        raise AppError("Progress record not found", status.HTTP_404_NOT_FOUND)
    await _get_managed_student(current_user, str(progress["student_id"]))

    row = await repository.update_progress_review(progress_id, payload.to_columns())
    if row is None:
        raise AppError("Progress record not found", status.HTTP_404_NOT_FOUND)
    logger.info("progress_reviewed admin_id=%s progress_id=%s", current_user["id"], progress_id)
    return to_progress_dict(row)


async def get_module_progress(current_user: dict, module_id: str) -> list[dict]:
    if await repository.get_module(module_id) is None:
        raise AppError("Reading module not found", status.HTTP_404_NOT_FOUND)
    admin_id = None if current_user["is_super_admin"] else current_user["id"]
    rows = await repository.list_progress_for_module(module_id, admin_id=admin_id)
    return [to_progress_dict(row) for row in rows]


async def get_student_progress(current_user: dict, student_id: str) -> list[dict]:
    await _get_managed_student(current_user, student_id)
    rows = await repository.list_progress_for_student(student_id)
    return [to_progress_dict(row) for row in rows]


async def get_student_module_progress(current_user: dict, student_id: str, module_id: str) -> dict:
    await _get_managed_student(current_user, student_id)
    return await _progress_details(student_id, module_id)
