"""
Tests for task lifecycle endpoints (/api/v1/tasks).

Tests cover:
- Creation membership checks and assignment notifications
- Visibility-scoped listing, filters, ordering and pagination
- Updates: reassignment/status notifications, unassignment, assignee checks
- Status shortcut endpoint
- Delete permissions (manager or assignee)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from synergysphere import models
from tests.conftest import add_membership, make_task

logger = logging.getLogger(__name__)


def notifications_for(db: Session, user: models.User, type: Optional[models.NotificationType] = None):
    query = db.query(models.Notification).filter(models.Notification.user_id == user.id)
    if type is not None:
        query = query.filter(models.Notification.type == type)
    return query.order_by(models.Notification.id).all()


# ============== Create ==============


def test_create_task_not_a_member(
    client: TestClient, test_db: Session, project: models.Project, member_headers
):
    """Test that a non-member cannot create a task in the project (400) and no row is written."""
    response = client.post(
        "/api/v1/tasks",
        json={"title": "Sneaky", "project_id": project.id},
        headers=member_headers,
    )

    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"
    assert response.json()["message"] == "You are not a member of this project"
    assert response.json()["errors"] == [{"field": "project_id", "message": "You are not a member of this project"}]
    assert test_db.query(models.Task).count() == 0
    logger.info("✓ Non-member task creation rejected")


def test_create_task_assignee_not_a_member(
    client: TestClient,
    test_db: Session,
    project: models.Project,
    other_user: models.User,
    owner_headers,
):
    """Test that assigning to a non-member fails before any task row is created."""
    response = client.post(
        "/api/v1/tasks",
        json={"title": "Outsourced", "project_id": project.id, "assigned_to": other_user.id},
        headers=owner_headers,
    )

    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"
    assert response.json()["message"] == "Assigned user is not a member of this project"
    assert response.json()["errors"][0]["field"] == "assigned_to"
    assert test_db.query(models.Task).count() == 0
    assert test_db.query(models.Notification).count() == 0
    logger.info("✓ Assignment to non-member rejected with no task created")


def test_create_task_assigned_notifies_assignee(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    owner_headers,
):
    """Test that a new task assigned to someone else sends them one TASK_ASSIGNED."""
    response = client.post(
        "/api/v1/tasks",
        json={
            "title": "Write docs",
            "project_id": project_with_member.id,
            "assigned_to": member_user.id,
            "due_date": "2030-01-15T09:00:00Z",
        },
        headers=owner_headers,
    )

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()["data"]
    assert data["status"] == "TODO"
    assert data["assignee"]["id"] == member_user.id
    assert data["project"] == {"id": project_with_member.id, "name": project_with_member.name}

    assigned = notifications_for(test_db, member_user, models.NotificationType.TASK_ASSIGNED)
    assert len(assigned) == 1
    assert "Write docs" in assigned[0].message
    assert project_with_member.name in assigned[0].message
    logger.info("✓ Assignee notified on task creation")


def test_create_task_self_assigned_no_notification(
    client: TestClient,
    test_db: Session,
    project: models.Project,
    owner_user: models.User,
    owner_headers,
):
    response = client.post(
        "/api/v1/tasks",
        json={"title": "Mine", "project_id": project.id, "assigned_to": owner_user.id},
        headers=owner_headers,
    )

    assert response.status_code == 201
    assert notifications_for(test_db, owner_user) == []


def test_create_task_ignores_requested_status(
    client: TestClient, project: models.Project, owner_headers
):
    """Test that new tasks always start as TODO."""
    response = client.post(
        "/api/v1/tasks",
        json={"title": "Already done?", "project_id": project.id, "status": "DONE"},
        headers=owner_headers,
    )

    assert response.status_code == 201
    assert response.json()["data"]["status"] == "TODO"


def test_create_task_blank_title(client: TestClient, project: models.Project, owner_headers):
    response = client.post(
        "/api/v1/tasks",
        json={"title": "   ", "project_id": project.id},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "title"


# ============== List / Get ==============


def test_list_tasks_scoped_to_member_projects(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    other_user: models.User,
    member_headers,
):
    """Test that listing excludes foreign projects, and project_id narrows but never widens."""
    foreign = models.Project(name="Foreign", owner_id=other_user.id)
    test_db.add(foreign)
    test_db.commit()
    add_membership(test_db, foreign, other_user, models.MemberRole.OWNER)
    make_task(test_db, foreign, "Hidden")
    visible = make_task(test_db, project_with_member, "Visible")

    response = client.get("/api/v1/tasks", headers=member_headers)
    assert [t["id"] for t in response.json()["data"]] == [visible.id]

    response = client.get(f"/api/v1/tasks?project_id={foreign.id}", headers=member_headers)
    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["meta"]["total"] == 0
    logger.info("✓ Task listing restricted to member projects")


def test_list_tasks_without_memberships_is_empty(
    client: TestClient, project: models.Project, other_headers
):
    response = client.get("/api/v1/tasks?page=3&limit=7", headers=other_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["data"] == []
    assert body["meta"] == {"page": 3, "limit": 7, "total": 0, "totalPages": 0}


def test_list_tasks_ordering(
    client: TestClient, test_db: Session, project: models.Project, owner_headers
):
    """Test ordering by workflow status, then due date with nulls last."""
    now = datetime.now(timezone.utc)
    done = make_task(test_db, project, "Done soon", status=models.TaskStatus.DONE, due_date=now + timedelta(days=1))
    undated = make_task(test_db, project, "Undated")
    later = make_task(test_db, project, "Later", due_date=now + timedelta(days=10))
    sooner = make_task(test_db, project, "Sooner", due_date=now + timedelta(days=2))
    started = make_task(test_db, project, "Started", status=models.TaskStatus.IN_PROGRESS)

    response = client.get("/api/v1/tasks", headers=owner_headers)

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["data"]] == [sooner.id, later.id, undated.id, started.id, done.id]
    logger.info("✓ Tasks ordered by status then due date")


def test_list_tasks_pagination(
    client: TestClient, test_db: Session, project: models.Project, owner_headers
):
    """Test page 2 of 12 tasks with limit 5."""
    for index in range(12):
        make_task(test_db, project, f"Task {index}")

    response = client.get("/api/v1/tasks?limit=5&page=2", headers=owner_headers)

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    body = response.json()
    assert len(body["data"]) == 5
    assert body["meta"] == {"page": 2, "limit": 5, "total": 12, "totalPages": 3}
    logger.info("✓ Task pagination meta correct")


def test_list_tasks_filters(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    owner_headers,
):
    mine = make_task(test_db, project_with_member, "Assigned", assignee=member_user)
    finished = make_task(test_db, project_with_member, "Finished", status=models.TaskStatus.DONE)

    by_assignee = client.get(f"/api/v1/tasks?assigned_to={member_user.id}", headers=owner_headers).json()
    by_status = client.get("/api/v1/tasks?status=DONE", headers=owner_headers).json()

    assert [t["id"] for t in by_assignee["data"]] == [mine.id]
    assert [t["id"] for t in by_status["data"]] == [finished.id]


def test_get_task_not_visible(
    client: TestClient, test_db: Session, project: models.Project, member_headers
):
    task = make_task(test_db, project, "Private")

    response = client.get(f"/api/v1/tasks/{task.id}", headers=member_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Task not found"


# ============== Update ==============


def test_update_task_reassign_notifies_new_assignee(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    other_user: models.User,
    owner_headers,
):
    """Test reassignment A -> B notifies only B."""
    add_membership(test_db, project_with_member, other_user)
    task = make_task(test_db, project_with_member, "Relay", assignee=member_user)

    response = client.put(
        f"/api/v1/tasks/{task.id}", json={"assigned_to": other_user.id}, headers=owner_headers
    )

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    assert response.json()["data"]["assigned_to"] == other_user.id
    assert len(notifications_for(test_db, other_user, models.NotificationType.TASK_ASSIGNED)) == 1
    assert notifications_for(test_db, member_user) == []
    logger.info("✓ Reassignment notified the new assignee only")


def test_update_task_reassign_to_self_no_notification(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    owner_user: models.User,
    member_user: models.User,
    owner_headers,
):
    task = make_task(test_db, project_with_member, "Take over", assignee=member_user)

    response = client.put(
        f"/api/v1/tasks/{task.id}", json={"assigned_to": owner_user.id}, headers=owner_headers
    )

    assert response.status_code == 200
    assert test_db.query(models.Notification).count() == 0


def test_update_task_status_notifies_previous_assignee(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    other_user: models.User,
    owner_headers,
):
    """
    Test that a status change and reassignment in one update notify two people.

    The old assignee hears about the status change, the new one about the assignment.
    """
    add_membership(test_db, project_with_member, other_user)
    task = make_task(test_db, project_with_member, "Swap", assignee=member_user)

    response = client.put(
        f"/api/v1/tasks/{task.id}",
        json={"status": "IN_PROGRESS", "assigned_to": other_user.id},
        headers=owner_headers,
    )

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    updated = notifications_for(test_db, member_user, models.NotificationType.TASK_UPDATED)
    assert len(updated) == 1
    assert "IN_PROGRESS" in updated[0].message
    assert notifications_for(test_db, member_user, models.NotificationType.TASK_ASSIGNED) == []
    assert len(notifications_for(test_db, other_user, models.NotificationType.TASK_ASSIGNED)) == 1
    assert notifications_for(test_db, other_user, models.NotificationType.TASK_UPDATED) == []
    logger.info("✓ Old assignee got TASK_UPDATED, new assignee got TASK_ASSIGNED")


def test_update_task_assignee_not_member(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    other_user: models.User,
    owner_headers,
):
    task = make_task(test_db, project_with_member, "Keep", assignee=member_user)

    response = client.put(
        f"/api/v1/tasks/{task.id}",
        json={"assigned_to": other_user.id, "title": "Changed"},
        headers=owner_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Assigned user is not a member of this project"
    assert response.json()["errors"][0]["field"] == "assigned_to"
    test_db.expire_all()
    unchanged = test_db.query(models.Task).filter(models.Task.id == task.id).one()
    assert unchanged.assigned_to == member_user.id
    assert unchanged.title == "Keep"


def test_update_task_null_assignee_unassigns(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    owner_headers,
):
    task = make_task(test_db, project_with_member, "Drop", assignee=member_user)

    response = client.put(f"/api/v1/tasks/{task.id}", json={"assigned_to": None}, headers=owner_headers)

    assert response.status_code == 200
    assert response.json()["data"]["assigned_to"] is None
    assert response.json()["data"]["assignee"] is None


def test_update_task_not_visible(
    client: TestClient, test_db: Session, project: models.Project, member_headers
):
    task = make_task(test_db, project, "Private")

    response = client.put(f"/api/v1/tasks/{task.id}", json={"title": "Mine now"}, headers=member_headers)

    assert response.status_code == 404


def test_status_endpoint_by_assignee_sends_nothing(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    member_headers,
):
    """Test that an assignee finishing their own task notifies nobody."""
    task = make_task(test_db, project_with_member, "Own work", assignee=member_user)

    response = client.patch(f"/api/v1/tasks/{task.id}/status", json={"status": "DONE"}, headers=member_headers)

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    assert response.json()["data"]["status"] == "DONE"
    assert test_db.query(models.Notification).count() == 0


def test_status_endpoint_notifies_assignee(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    owner_headers,
):
    task = make_task(test_db, project_with_member, "Reviewed", assignee=member_user)

    response = client.patch(f"/api/v1/tasks/{task.id}/status", json={"status": "DONE"}, headers=owner_headers)

    assert response.status_code == 200
    assert len(notifications_for(test_db, member_user, models.NotificationType.TASK_UPDATED)) == 1


def test_status_endpoint_rejects_unknown_status(
    client: TestClient, test_db: Session, project: models.Project, owner_headers
):
    task = make_task(test_db, project, "Strict")

    response = client.patch(f"/api/v1/tasks/{task.id}/status", json={"status": "BLOCKED"}, headers=owner_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "status"


# ============== Delete ==============


def test_delete_task_plain_member_forbidden(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_headers,
):
    task = make_task(test_db, project_with_member, "Not yours")

    response = client.delete(f"/api/v1/tasks/{task.id}", headers=member_headers)

    assert response.status_code == 403, f"Expected 403, got {response.status_code}: {response.json()}"
    assert response.json()["message"] == "Insufficient permissions to delete this task"
    assert test_db.query(models.Task).count() == 1


def test_delete_task_by_assignee(
    client: TestClient,
    test_db: Session,
    project_with_member: models.Project,
    member_user: models.User,
    member_headers,
):
    task = make_task(test_db, project_with_member, "Yours", assignee=member_user)

    response = client.delete(f"/api/v1/tasks/{task.id}", headers=member_headers)

    assert response.status_code == 200
    assert test_db.query(models.Task).count() == 0


def test_delete_task_by_admin(
    client: TestClient,
    test_db: Session,
    project: models.Project,
    other_user: models.User,
    other_headers,
):
    add_membership(test_db, project, other_user, models.MemberRole.ADMIN)
    task = make_task(test_db, project, "Cleanup")

    response = client.delete(f"/api/v1/tasks/{task.id}", headers=other_headers)

    assert response.status_code == 200
    assert test_db.query(models.Task).count() == 0
    assert test_db.query(models.Notification).count() == 0


def test_delete_task_not_visible(
    client: TestClient, test_db: Session, project: models.Project, other_headers
):
    task = make_task(test_db, project, "Hidden")

    response = client.delete(f"/api/v1/tasks/{task.id}", headers=other_headers)

    assert response.status_code == 404


# ============== Identifier Bounds ==============

HUGE_ID = 10**20


def test_task_ids_beyond_column_range_are_validation_errors(
    client: TestClient, test_db: Session, project: models.Project, owner_headers
):
    """Test that ids too large for the integer columns yield 400 with the field, never a 500."""
    fetched = client.get(f"/api/v1/tasks/{HUGE_ID}", headers=owner_headers)
    created = client.post(
        "/api/v1/tasks",
        json={"title": "Overflow", "project_id": project.id, "assigned_to": HUGE_ID},
        headers=owner_headers,
    )
    paged = client.get(f"/api/v1/tasks?page={HUGE_ID}", headers=owner_headers)
    filtered = client.get(f"/api/v1/tasks?project_id={HUGE_ID}", headers=owner_headers)

    for response, field in (
        (fetched, "task_id"),
        (created, "assigned_to"),
        (paged, "page"),
        (filtered, "project_id"),
    ):
        assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"
        assert response.json()["message"] == "Validation failed"
        assert [error["field"] for error in response.json()["errors"]] == [field]
    assert test_db.query(models.Task).count() == 0
    logger.info("✓ Oversized task identifiers rejected as validation errors")
