"""Tests for student progress endpoints."""

from datetime import datetime, timezone

import asyncpg
import pytest

from progress import repository as progress_repository
from progress import schemas as progress_schemas

from conftest import ADMIN_ID, MODULE_ID, STUDENT_ID, patch_async

PROGRESS_ID = "77777777-7777-4777-8777-777777777777"
SUBMISSION_ID = "88888888-8888-4888-8888-888888888888"

STARTED_AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def progress_row(**overrides):
    row = {
        "id": PROGRESS_ID,
        "student_id": STUDENT_ID,
        "module_id": MODULE_ID,
        "completed": False,
        "score": None,
        "highest_paragraph_index_reached": 0,
        "final_summary": None,
        "started_at": STARTED_AT,
        "completed_at": None,
        "time_spent_minutes": None,
        "teacher_feedback": None,
        "teacher_feedback_at": None,
        "created_at": STARTED_AT,
        "updated_at": STARTED_AT,
    }
    row.update(overrides)
    return row


def submission_row(paragraph_index=1, **overrides):
    row = {
        "id": SUBMISSION_ID,
        "student_progress_id": PROGRESS_ID,
        "paragraph_index": paragraph_index,
        "paragraph_summary": "The keeper climbs.",
        "cumulative_summary": "The keeper climbs.",
        "submitted_at": STARTED_AT,
        "created_at": STARTED_AT,
        "updated_at": STARTED_AT,
    }
    row.update(overrides)
    return row


STUDENT = {"id": STUDENT_ID, "admin_id": ADMIN_ID, "full_name": "Ada Reader"}
MODULE = {"id": MODULE_ID, "title": "The Lighthouse", "paragraph_count": 2, "is_active": True}

SUMMARY_PAYLOAD = {
    "moduleId": MODULE_ID,
    "paragraphIndex": 1,
    "paragraphSummary": "The keeper climbs.",
    "cumulativeSummary": "The keeper climbs.",
}


class TestStartProgress:
    """Tests for POST /api/v1/progress/start."""

    def test_creates_record(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", None)
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        insert = patch_async(monkeypatch, progress_repository, "insert_progress", progress_row())

        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=student_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Progress tracking started."
        assert body["data"]["highestParagraphIndexReached"] == 0
        assert body["data"]["completed"] is False
        insert.assert_awaited_once_with(STUDENT_ID, MODULE_ID)

    def test_existing_record_is_returned(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row(highest_paragraph_index_reached=1))
        insert = patch_async(monkeypatch, progress_repository, "insert_progress")

        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=student_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Progress already exists."
        insert.assert_not_awaited()

    def test_concurrent_start_is_idempotent(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", side_effect=[None, progress_row()])
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        patch_async(monkeypatch, progress_repository, "insert_progress", None)

        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=student_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Progress already exists."

    def test_unknown_module(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", None)
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "get_module", None)

        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=student_headers)
        assert response.status_code == 404

    def test_unknown_student(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", None)
        patch_async(monkeypatch, progress_repository, "get_student", None)

        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=student_headers)
        assert response.status_code == 404

    def test_admins_cannot_start(self, client, admin_headers):
        response = client.post("/api/v1/progress/start", json={"moduleId": MODULE_ID}, headers=admin_headers)
        assert response.status_code == 403


class TestSubmitSummary:
    """Tests for POST /api/v1/progress/submit-summary."""

    def test_first_paragraph(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row())
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        record = patch_async(
            monkeypatch,
            progress_repository,
            "record_submission",
            (submission_row(1), progress_row(highest_paragraph_index_reached=1)),
        )

        response = client.post("/api/v1/progress/submit-summary", json=SUMMARY_PAYLOAD, headers=student_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Summary for paragraph 1 submitted successfully."
        assert body["data"] == {
            "submissionId": SUBMISSION_ID,
            "progressStatus": {"completed": False, "highestParagraphIndexReached": 1, "finalSummary": None},
        }
        assert record.await_args.kwargs["completes_module"] is False

    def test_last_paragraph_completes_module(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row(highest_paragraph_index_reached=1))
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        completed = progress_row(
            completed=True,
            highest_paragraph_index_reached=2,
            final_summary="Keeper climbs. Storm comes.",
            completed_at=STARTED_AT,
        )
        record = patch_async(
            monkeypatch,
            progress_repository,
            "record_submission",
            (submission_row(2), completed),
        )
        payload = dict(SUMMARY_PAYLOAD, paragraphIndex=2, cumulativeSummary="Keeper climbs. Storm comes.")

        response = client.post("/api/v1/progress/submit-summary", json=payload, headers=student_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Summary for paragraph 2 submitted successfully. Module completed!"
        assert body["data"]["progressStatus"]["finalSummary"] == "Keeper climbs. Storm comes."
        assert record.await_args.kwargs["completes_module"] is True
        assert record.await_args.kwargs["cumulative_summary"] == "Keeper climbs. Storm comes."

    def test_without_progress(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", None)
        response = client.post("/api/v1/progress/submit-summary", json=SUMMARY_PAYLOAD, headers=student_headers)
        assert response.status_code == 404

    def test_completed_module(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row(completed=True))
        response = client.post("/api/v1/progress/submit-summary", json=SUMMARY_PAYLOAD, headers=student_headers)
        assert response.status_code == 400

    def test_module_deleted(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row())
        patch_async(monkeypatch, progress_repository, "get_module", None)
        response = client.post("/api/v1/progress/submit-summary", json=SUMMARY_PAYLOAD, headers=student_headers)
        assert response.status_code == 404

    def test_index_beyond_paragraph_count(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row())
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        record = patch_async(monkeypatch, progress_repository, "record_submission")

        payload = dict(SUMMARY_PAYLOAD, paragraphIndex=3)
        response = client.post("/api/v1/progress/submit-summary", json=payload, headers=student_headers)

        assert response.status_code == 400
        record.assert_not_awaited()

    def test_duplicate_paragraph(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row())
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        patch_async(
            monkeypatch,
            progress_repository,
            "record_submission",
            side_effect=asyncpg.UniqueViolationError("duplicate key"),
        )

        response = client.post("/api/v1/progress/submit-summary", json=SUMMARY_PAYLOAD, headers=student_headers)
        assert response.status_code == 409

    @pytest.mark.parametrize(
        "change",
        [
            {"paragraphIndex": 0},
            {"paragraphSummary": ""},
            {"paragraphSummary": "x" * 1001},
            {"cumulativeSummary": "x" * 10001},
            {"moduleId": "not-a-uuid"},
        ],
    )
    def test_invalid_payloads(self, client, student_headers, change):
        response = client.post(
            "/api/v1/progress/submit-summary",
            json=dict(SUMMARY_PAYLOAD, **change),
            headers=student_headers,
        )
        assert response.status_code == 400


class TestStudentViews:
    """Tests for GET /api/v1/progress/details/{moduleId} and /my-progress."""

    def test_details_without_progress(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", None)
        response = client.get(f"/api/v1/progress/details/{MODULE_ID}", headers=student_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"progress": None, "submissions": []}

    def test_details_with_submissions(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row(highest_paragraph_index_reached=1))
        listing = patch_async(monkeypatch, progress_repository, "list_submissions", [submission_row(1)])

        response = client.get(f"/api/v1/progress/details/{MODULE_ID}", headers=student_headers)

        data = response.json()["data"]
        assert data["progress"]["id"] == PROGRESS_ID
        assert data["submissions"][0]["paragraphIndex"] == 1
        listing.assert_awaited_once_with(PROGRESS_ID)

    def test_my_progress(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(
            monkeypatch,
            progress_repository,
            "list_progress_for_student",
            [progress_row(module_title="The Lighthouse", module_paragraph_count=2)],
        )

        response = client.get("/api/v1/progress/my-progress", headers=student_headers)

        assert response.status_code == 200
        assert response.json()["data"][0]["moduleTitle"] == "The Lighthouse"

    def test_my_progress_unknown_student(self, client, monkeypatch, student_headers):
        patch_async(monkeypatch, progress_repository, "get_student", None)
        response = client.get("/api/v1/progress/my-progress", headers=student_headers)
        assert response.status_code == 404


class TestAdminUpdateProgress:
    """Tests for PATCH /api/v1/progress/admin/update/{progressId}."""

    def test_scores_managed_student(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, progress_repository, "get_progress_by_id", progress_row())
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        update = patch_async(
            monkeypatch,
            progress_repository,
            "update_progress_review",
            progress_row(score=90, teacher_feedback="Great work"),
        )

        response = client.patch(
            f"/api/v1/progress/admin/update/{PROGRESS_ID}",
            json={"score": 90, "teacherFeedback": "Great work"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["score"] == 90
        update.assert_awaited_once_with(PROGRESS_ID, {"score": 90, "teacher_feedback": "Great work"})

    def test_other_admin_forbidden(self, client, monkeypatch, other_admin_headers):
        patch_async(monkeypatch, progress_repository, "get_progress_by_id", progress_row())
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        update = patch_async(monkeypatch, progress_repository, "update_progress_review")

        response = client.patch(
            f"/api/v1/progress/admin/update/{PROGRESS_ID}",
            json={"completed": True},
            headers=other_admin_headers,
        )

        assert response.status_code == 403
        update.assert_not_awaited()

    def test_super_admin_allowed(self, client, monkeypatch, super_admin_headers):
        patch_async(monkeypatch, progress_repository, "get_progress_by_id", progress_row())
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "update_progress_review", progress_row(completed=True))

        response = client.patch(
            f"/api/v1/progress/admin/update/{PROGRESS_ID}",
            json={"completed": True},
            headers=super_admin_headers,
        )
        assert response.status_code == 200

    def test_missing_progress(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, progress_repository, "get_progress_by_id", None)
        response = client.patch(
            f"/api/v1/progress/admin/update/{PROGRESS_ID}", json={"score": 50}, headers=admin_headers
        )
        assert response.status_code == 404

    @pytest.mark.parametrize("body", [{}, {"score": 101}, {"score": -1}, {"teacherFeedback": "x" * 2001}])
    def test_invalid_bodies(self, client, admin_headers, body):
        response = client.patch(f"/api/v1/progress/admin/update/{PROGRESS_ID}", json=body, headers=admin_headers)
        assert response.status_code == 400


class TestAdminProgressViews:
    """Tests for the admin progress listings."""

    def test_module_progress_scoped_to_admin(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        listing = patch_async(
            monkeypatch,
            progress_repository,
            "list_progress_for_module",
            [progress_row(student_name="Ada Reader")],
        )

        response = client.get(f"/api/v1/progress/admin/module/{MODULE_ID}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"][0]["studentName"] == "Ada Reader"
        listing.assert_awaited_once_with(MODULE_ID, admin_id=ADMIN_ID)

    def test_module_progress_unscoped_for_super_admin(self, client, monkeypatch, super_admin_headers):
        patch_async(monkeypatch, progress_repository, "get_module", MODULE)
        listing = patch_async(monkeypatch, progress_repository, "list_progress_for_module", [])

        client.get(f"/api/v1/progress/admin/module/{MODULE_ID}", headers=super_admin_headers)

        listing.assert_awaited_once_with(MODULE_ID, admin_id=None)

    def test_student_progress(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "list_progress_for_student", [progress_row()])

        response = client.get(f"/api/v1/progress/admin/student/{STUDENT_ID}", headers=admin_headers)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_student_progress_other_admin(self, client, monkeypatch, other_admin_headers):
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        response = client.get(f"/api/v1/progress/admin/student/{STUDENT_ID}", headers=other_admin_headers)
        assert response.status_code == 403

    def test_student_module_details(self, client, monkeypatch, admin_headers):
        patch_async(monkeypatch, progress_repository, "get_student", STUDENT)
        patch_async(monkeypatch, progress_repository, "get_progress", progress_row())
        patch_async(monkeypatch, progress_repository, "list_submissions", [submission_row(1), submission_row(2)])

        response = client.get(
            f"/api/v1/progress/admin/student/{STUDENT_ID}/module/{MODULE_ID}",
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert [s["paragraphIndex"] for s in response.json()["data"]["submissions"]] == [1, 2]


class TestAdminProgressUpdateRequest:
    """Column mapping for teacher review updates."""

    def test_null_completed_is_ignored(self):
        request = progress_schemas.AdminProgressUpdateRequest.model_validate({"score": 10, "completed": None})
        assert request.to_columns() == {"score": 10}

    def test_feedback_maps_to_column(self):
        request = progress_schemas.AdminProgressUpdateRequest.model_validate({"teacherFeedback": "Nice"})
        assert request.to_columns() == {"teacher_feedback": "Nice"}
