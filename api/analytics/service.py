"""
Usage analytics for super admins.
"""

from __future__ import annotations

import logging

from fastapi import status

from core.errors import AppError

from . import repository

logger = logging.getLogger(__name__)

DASHBOARD_POPULAR_MODULES = 5
REVENUE_WINDOW_DAYS = 30


def completion_rate(completed: int, total: int) -> float:
    """Percentage of `total` that is `completed`, rounded to one decimal."""
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 1)


async def get_teacher_stats(teacher_id: str) -> dict:
    teacher = await repository.get_teacher(teacher_id)
    if teacher is None:
        raise AppError("Teacher not found", status.HTTP_404_NOT_FOUND)

    student_count = await repository.count_students(teacher_id)
    stats = await repository.module_stats_for_teacher(teacher_id)
    total = int(stats["total_modules"] or 0)
    completed = int(stats["completed_modules"] or 0)
    return {
        "studentCount": student_count,
        "subscriptionTier": teacher["subscription_plan"],
        "subscriptionStatus": teacher["subscription_status"],
        "moduleStats": {
            "totalModules": total,
            "completedModules": completed,
            "completionRate": completion_rate(completed, total),
        },
    }


async def get_popular_modules(limit: int) -> list[dict]:
    rows = await repository.popular_modules(limit)
    return [
        {
            "moduleId": str(row["module_id"]),
            "title": row["title"],
            "startCount": int(row["start_count"]),
            "completionCount": int(row["completion_count"]),
            "completionRate": completion_rate(int(row["completion_count"]), int(row["start_count"])),
        }
        for row in rows
    ]


async def get_dashboard(teacher_id: str) -> dict:
    return {
        "teacherStats": await get_teacher_stats(teacher_id),
        "popularModules": await get_popular_modules(DASHBOARD_POPULAR_MODULES),
    }


async def get_student_progress_over_time(student_id: str, days: int) -> dict:
    if not await repository.student_exists(student_id):
        raise AppError("Student not found", status.HTTP_404_NOT_FOUND)

    rows = await repository.progress_by_day(student_id, days)
    return {
        "progressByDay": [
            {
                "date": row["day"],
                "modulesActive": int(row["modules_active"]),
                "modulesCompleted": int(row["modules_completed"]),
                "timeSpent": int(row["time_spent"] or 0),
                "averageScore": round(float(row["average_score"]), 1) if row["average_score"] is not None else 0,
                "lastActivity": row["last_activity"],
            }
            for row in rows
        ]
    }


async def get_subscription_stats() -> dict:
    plans = await repository.plan_distribution()
    statuses = await repository.status_distribution()
    revenue = await repository.revenue_by_day(REVENUE_WINDOW_DAYS)
    return {
        "planDistribution": [{"plan": row["plan"], "count": int(row["count"])} for row in plans],
        "statusDistribution": [{"status": row["status"], "count": int(row["count"])} for row in statuses],
        "recentRevenue": [
            {"date": row["day"], "total": float(row["total"] or 0), "count": int(row["count"])}
            for row in revenue
        ],
    }
