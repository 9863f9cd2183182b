"""
Integration tests for Task endpoints.

Tests cover:
- Schema validation for create, update and filters
- Task CRUD with soft deletion
- Role-scoped listing, filters and pagination
- Status changes through the completion gate
- Assignment
"""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from taskgraph_shared.schemas.common import TaskStatus
from taskgraph_shared.schemas.tasks import DependencyAdd, TaskCreate, TaskFilters, TaskUpdate

from conftest import auth_headers, link, make_task


# ---------------------------------------------------------------------------
# Unit tests: schemas
# ---------------------------------------------------------------------------


class TestTaskSchemas:
    def test_create_requires_title(self):
        with pytest.raises(ValidationError):
            TaskCreate(title="")

    def test_update_tracks_sent_fields(self):
        update = TaskUpdate(description=None)
        assert update.model_dump(exclude_unset=True) == {"description": None}

    def test_update_rejects_null_title(self):
        with pytest.raises(ValidationError):
            TaskUpdate(title=None)

    def test_filters_reject_inverted_due_range(self):
        with pytest.raises(ValidationError):
            TaskFilters(due_date_from=date(2026, 5, 2), due_date_to=date(2026, 5, 1))

    def test_filters_default_to_first_page(self):
        filters = TaskFilters()
        assert (filters.page, filters.per_page) == (1, 15)

    def test_dependency_add_needs_at_least_one_code(self):
        with pytest.raises(ValidationError):
            DependencyAdd(dependency_ids=[])


# ---------------------------------------------------------------------------
# Integration: CRUD
# ---------------------------------------------------------------------------


class TestTaskCrud:
    async def test_manager_creates_task(self, client, manager, member):
        response = await client.post(
            "/api/v1/tasks",
            json={"title": "Write docs", "due_date": "2026-11-01", "assigned_to": member.id},
            headers=auth_headers(manager),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Task created successfully"
        data = body["data"]
        assert data["code"].startswith("TSK-")
        assert data["status"] == "pending"
        assert data["assignee"]["id"] == member.id
        assert data["creator"]["id"] == manager.id
        assert data["dependency_codes"] == []
        assert "id" not in data

    async def test_user_cannot_create(self, client, member):
        response = await client.post(
            "/api/v1/tasks", json={"title": "Nope"}, headers=auth_headers(member)
        )
        assert response.status_code == 403
        assert response.json()["success"] is False

    async def test_create_with_unknown_assignee(self, client, manager):
        response = await client.post(
            "/api/v1/tasks",
            json={"title": "Orphan", "assigned_to": 999},
            headers=auth_headers(manager),
        )
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Validation failed"
        assert "assigned_to" in body["errors"]

    async def test_create_missing_title_is_validation_envelope(self, client, manager):
        response = await client.post("/api/v1/tasks", json={}, headers=auth_headers(manager))
        assert response.status_code == 422
        assert "title" in response.json()["errors"]

    async def test_get_task_details(self, client, session, manager):
        task = await make_task(session, manager, "Top")
        done = await make_task(session, manager, "Done", status=TaskStatus.COMPLETED)
        open_ = await make_task(session, manager, "Open")
        await link(session, task, done)
        await link(session, task, open_)

        response = await client.get(f"/api/v1/tasks/{task.code}", headers=auth_headers(manager))
        assert response.status_code == 200
        data = response.json()["data"]
        assert [d["code"] for d in data["dependencies"]] == [done.code, open_.code]
        assert data["dependencies_stats"]["total"] == 2
        assert data["dependencies_stats"]["completion_percentage"] == 50.0
        assert data["dependencies_stats"]["can_be_completed"] is False
        assert data["dependencies_summary"] == "1 of 2 dependencies completed (1 remaining) - 50%"

    async def test_get_unknown_task(self, client, manager):
        response = await client.get("/api/v1/tasks/TSK-NOPE", headers=auth_headers(manager))
        assert response.status_code == 404
        assert response.json()["message"] == "Task not found"

    async def test_user_cannot_view_unassigned(self, client, session, manager, member):
        task = await make_task(session, manager, "Hidden")
        response = await client.get(f"/api/v1/tasks/{task.code}", headers=auth_headers(member))
        assert response.status_code == 403

    @pytest.mark.parametrize("method", ["PUT", "PATCH"])
    async def test_update_task(self, client, session, manager, method):
        task = await make_task(session, manager, "Old")
        response = await client.request(
            method,
            f"/api/v1/tasks/{task.code}",
            json={"title": "New", "description": "Details"},
            headers=auth_headers(manager),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "New"
        assert data["description"] == "Details"

    async def test_user_cannot_update(self, client, session, manager, member):
        task = await make_task(session, manager, "Mine", assignee=member)
        response = await client.patch(
            f"/api/v1/tasks/{task.code}", json={"title": "Hijack"}, headers=auth_headers(member)
        )
        assert response.status_code == 403

    async def test_delete_is_soft(self, client, session, manager):
        task = await make_task(session, manager, "Doomed")
        response = await client.delete(f"/api/v1/tasks/{task.code}", headers=auth_headers(manager))
        assert response.status_code == 200
        assert response.json()["message"] == "Task deleted successfully"

        await session.refresh(task)
        assert task.deleted_at is not None

        response = await client.get(f"/api/v1/tasks/{task.code}", headers=auth_headers(manager))
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Integration: listing
# ---------------------------------------------------------------------------


class TestTaskListing:
    async def test_manager_sees_all(self, client, session, manager, member):
        await make_task(session, manager, "One", assignee=member)
        await make_task(session, manager, "Two")

        response = await client.get("/api/v1/tasks", headers=auth_headers(manager))
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["from"] == 1
        assert body["pagination"]["to"] == 2

    async def test_user_sees_only_assigned(self, client, session, manager, member, other_member):
        mine = await make_task(session, manager, "Mine", assignee=member)
        await make_task(session, manager, "Theirs", assignee=other_member)
        await make_task(session, manager, "Nobody's")

        response = await client.get("/api/v1/tasks", headers=auth_headers(member))
        assert [t["code"] for t in response.json()["data"]] == [mine.code]

    async def test_deleted_tasks_are_hidden(self, client, session, manager):
        keep = await make_task(session, manager, "Keep")
        gone = await make_task(session, manager, "Gone")
        await client.delete(f"/api/v1/tasks/{gone.code}", headers=auth_headers(manager))

        response = await client.get("/api/v1/tasks", headers=auth_headers(manager))
        assert [t["code"] for t in response.json()["data"]] == [keep.code]

    async def test_status_and_search_filters(self, client, session, manager):
        await make_task(session, manager, "Deploy backend", status=TaskStatus.IN_PROGRESS)
        await make_task(session, manager, "Deploy frontend")
        await make_task(session, manager, "Write tests", status=TaskStatus.IN_PROGRESS)

        response = await client.get(
            "/api/v1/tasks",
            params={"status": "in_progress", "search": "deploy"},
            headers=auth_headers(manager),
        )
        assert [t["title"] for t in response.json()["data"]] == ["Deploy backend"]

    async def test_due_range_filter(self, client, session, manager):
        await make_task(session, manager, "Early", due_date=date(2026, 1, 5))
        await make_task(session, manager, "Middle", due_date=date(2026, 2, 5))
        await make_task(session, manager, "Late", due_date=date(2026, 3, 5))

        response = await client.get(
            "/api/v1/tasks",
            params={"due_date_from": "2026-02-01", "due_date_to": "2026-02-28"},
            headers=auth_headers(manager),
        )
        assert [t["title"] for t in response.json()["data"]] == ["Middle"]

    async def test_inverted_due_range_is_422(self, client, manager):
        response = await client.get(
            "/api/v1/tasks",
            params={"due_date_from": "2026-02-28", "due_date_to": "2026-02-01"},
            headers=auth_headers(manager),
        )
        assert response.status_code == 422

    async def test_ordering_by_due_date_nulls_last(self, client, session, manager):
        await make_task(session, manager, "No date")
        await make_task(session, manager, "Later", due_date=date(2026, 6, 1))
        await make_task(session, manager, "Sooner", due_date=date(2026, 5, 1))

        response = await client.get("/api/v1/tasks", headers=auth_headers(manager))
        assert [t["title"] for t in response.json()["data"]] == ["Sooner", "Later", "No date"]

    async def test_pagination(self, client, session, manager):
        for i in range(5):
            await make_task(session, manager, f"T{i}", due_date=date(2026, 1, i + 1))

        response = await client.get(
            "/api/v1/tasks", params={"page": 2, "per_page": 2}, headers=auth_headers(manager)
        )
        body = response.json()
        assert [t["title"] for t in body["data"]] == ["T2", "T3"]
        assert body["pagination"]["current_page"] == 2
        assert body["pagination"]["last_page"] == 3
        assert body["pagination"]["has_more_pages"] is True
        assert body["pagination"]["from"] == 3
        assert body["pagination"]["to"] == 4

    async def test_default_paging_without_query(self, client, session, manager):
        await make_task(session, manager, "Only")

        response = await client.get("/api/v1/tasks", headers=auth_headers(manager))
        assert response.status_code == 200
        pagination = response.json()["pagination"]
        assert pagination["current_page"] == 1
        assert pagination["per_page"] == 15

    async def test_per_page_upper_bound(self, client, manager):
        response = await client.get(
            "/api/v1/tasks", params={"per_page": 1000}, headers=auth_headers(manager)
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Integration: status & assignment
# ---------------------------------------------------------------------------


class TestStatusAndAssignment:
    async def test_assignee_updates_status(self, client, session, manager, member):
        task = await make_task(session, manager, "Mine", assignee=member)
        response = await client.patch(
            f"/api/v1/tasks/{task.code}/status",
            json={"status": "in_progress"},
            headers=auth_headers(member),
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"

    async def test_non_assignee_cannot_update_status(self, client, session, manager, member, other_member):
        task = await make_task(session, manager, "Theirs", assignee=other_member)
        response = await client.patch(
            f"/api/v1/tasks/{task.code}/status",
            json={"status": "completed"},
            headers=auth_headers(member),
        )
        assert response.status_code == 403
        assert response.json()["message"] == "You do not have permission to update this task status"

    async def test_completion_blocked_by_dependency(self, client, session, manager):
        task = await make_task(session, manager, "Top")
        dep = await make_task(session, manager, "Dep")
        await link(session, task, dep)

        response = await client.patch(
            f"/api/v1/tasks/{task.code}/status",
            json={"status": "completed"},
            headers=auth_headers(manager),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot complete task. All dependencies must be completed first"

    async def test_completion_sets_timestamp(self, client, session, manager):
        task = await make_task(session, manager, "Solo")
        response = await client.patch(
            f"/api/v1/tasks/{task.code}/status",
            json={"status": "completed"},
            headers=auth_headers(manager),
        )
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_at"] is not None
        assert data["canceled_at"] is None

    async def test_invalid_status_value(self, client, session, manager):
        task = await make_task(session, manager, "Solo")
        response = await client.patch(
            f"/api/v1/tasks/{task.code}/status",
            json={"status": "done"},
            headers=auth_headers(manager),
        )
        assert response.status_code == 422
        assert "status" in response.json()["errors"]

    async def test_assign(self, client, session, manager, member):
        task = await make_task(session, manager, "Unassigned")
        response = await client.post(
            f"/api/v1/tasks/{task.code}/assign",
            json={"user_id": member.id},
            headers=auth_headers(manager),
        )
        assert response.status_code == 200
        assert response.json()["data"]["assignee"]["id"] == member.id

    async def test_assign_unknown_user(self, client, session, manager):
        task = await make_task(session, manager, "Unassigned")
        response = await client.post(
            f"/api/v1/tasks/{task.code}/assign",
            json={"user_id": 12345},
            headers=auth_headers(manager),
        )
        assert response.status_code == 422
        assert "user_id" in response.json()["errors"]

    async def test_user_cannot_assign(self, client, session, manager, member):
        task = await make_task(session, manager, "Mine", assignee=member)
        response = await client.post(
            f"/api/v1/tasks/{task.code}/assign",
            json={"user_id": member.id},
            headers=auth_headers(member),
        )
        assert response.status_code == 403
