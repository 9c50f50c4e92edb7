"""
Analytics API endpoints.

Everything here is super admin only except `/analytics/my-activity`.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies
from core.responses import success

from . import service

router = APIRouter()


@router.get("/analytics/dashboard")
async def get_dashboard(
    current_user: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    return success(await service.get_dashboard(current_user["id"]))


@router.get("/analytics/students/{student_id}")
async def get_student_progress(
    student_id: UUID,
    days: int = Query(30, ge=1, le=365),
    _: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    return success(await service.get_student_progress_over_time(str(student_id), days))


@router.get("/analytics/modules/popular")
async def get_popular_modules(
    limit: int = Query(10, ge=1, le=50),
    _: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    return success(await service.get_popular_modules(limit))


@router.get("/analytics/subscriptions")
async def get_subscription_stats(
    _: dict = Depends(auth_dependencies.require_super_admin),
) -> dict:
    return success(await service.get_subscription_stats())


@router.get("/analytics/my-activity")
async def get_my_activity(
    days: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(auth_dependencies.get_current_user),
) -> dict:
    """
    The caller's own activity by day (student calendar view).
    """
    return success(await service.get_student_progress_over_time(current_user["id"], days))
