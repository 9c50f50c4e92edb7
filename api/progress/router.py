"""
Progress API endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from auth import dependencies as auth_dependencies
from core.responses import success

from . import schemas, service

router = APIRouter()


@router.post("/progress/start")
async def start_progress(
    request: schemas.StartProgressRequest,
    response: Response,
    current_user: dict = Depends(auth_dependencies.require_student),
) -> dict:
    progress, created = await service.start_progress(current_user["id"], str(request.module_id))
    if created:
        response.status_code = status.HTTP_201_CREATED
        return success(progress, "Progress tracking started.")
    return success(progress, "Progress already exists.")


@router.post("/progress/submit-summary", status_code=status.HTTP_201_CREATED)
async def submit_summary(
    request: schemas.SubmitSummaryRequest,
    current_user: dict = Depends(auth_dependencies.require_student),
) -> dict:
    data, message = await service.submit_summary(current_user["id"], request)
    return success(data, message)


@router.get("/progress/details/{module_id}")
async def get_progress_details(
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_student),
) -> dict:
    return success(await service.get_progress_details(current_user["id"], str(module_id)))


@router.get("/progress/my-progress")
async def get_my_progress(
    current_user: dict = Depends(auth_dependencies.require_student),
) -> dict:
    return success(await service.get_my_progress(current_user["id"]))


# Admin

@router.patch("/progress/admin/update/{progress_id}")
async def update_progress(
    progress_id: UUID,
    request: schemas.AdminProgressUpdateRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.update_progress(current_user, str(progress_id), request))


@router.get("/progress/admin/module/{module_id}")
async def get_module_progress(
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_module_progress(current_user, str(module_id)))


@router.get("/progress/admin/student/{student_id}")
async def get_student_progress(
    student_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_student_progress(current_user, str(student_id)))


@router.get("/progress/admin/student/{student_id}/module/{module_id}")
async def get_student_module_progress(
    student_id: UUID,
    module_id: UUID,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    data = await service.get_student_module_progress(current_user, str(student_id), str(module_id))
    return success(data)
