"""
Task lifecycle: creation, listing, update, status change and deletion.

Mutations follow three steps: persist the change, diff the before/after
snapshots, then dispatch whatever notifications the diff calls for.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session, joinedload

from synergysphere.auth.permissions import MANAGER_ROLES, MembershipLedger
from synergysphere.errors import InsufficientPermission, NotFound, ValidationError
from synergysphere.models import NotificationType, ProjectMember, Task, TaskStatus, User
from synergysphere.services.notifications import (
    TASK_CREATED_ASSIGNED_TEMPLATE,
    TASK_REASSIGNED_TEMPLATE,
    TASK_STATUS_TEMPLATE,
    NotificationDispatcher,
    PendingNotification,
)
from synergysphere.services.pagination import Page, empty_page, paginate
from synergysphere.time_utils import to_utc

logger = logging.getLogger(__name__)

NOT_A_MEMBER = "You are not a member of this project"
ASSIGNEE_NOT_A_MEMBER = "Assigned user is not a member of this project"

# Listing order follows the workflow, not the storage collation of the enum
STATUS_ORDER = case(
    (Task.status == TaskStatus.TODO, 0),
    (Task.status == TaskStatus.IN_PROGRESS, 1),
    else_=2,
)


class TaskSnapshot(NamedTuple):
    title: str
    status: TaskStatus
    assigned_to: Optional[int]

    @classmethod
    def of(cls, task: Task) -> "TaskSnapshot":
        return cls(title=task.title, status=TaskStatus(task.status), assigned_to=task.assigned_to)


def compute_task_notifications(
    before: Optional[TaskSnapshot], after: TaskSnapshot, actor_id: int, project_name: str
) -> List[PendingNotification]:
    """
    Decide which notifications a task change triggers.

    ``before`` is None for a newly created task. Reassignment notifies the new
    assignee; a status change notifies the assignee held before the change.
    Nobody is notified about their own action.

    Args:
        before: Snapshot captured before the mutation, or None on creation
        after: Snapshot after the mutation was persisted
        actor_id: ID of the user who made the change
        project_name: Name of the task's project, used in messages

    Returns:
        Notifications to dispatch, in order
    """
    pending = []

    if before is None:
        if after.assigned_to is not None and after.assigned_to != actor_id:
            pending.append(PendingNotification(
                NotificationType.TASK_ASSIGNED,
                after.assigned_to,
                TASK_CREATED_ASSIGNED_TEMPLATE.format(title=after.title, project=project_name),
            ))
        return pending

    if (
        after.assigned_to is not None
        and after.assigned_to != before.assigned_to
        and after.assigned_to != actor_id
    ):
        pending.append(PendingNotification(
            NotificationType.TASK_ASSIGNED,
            after.assigned_to,
            TASK_REASSIGNED_TEMPLATE.format(title=after.title, project=project_name),
        ))

    if (
        after.status != before.status
        and before.assigned_to is not None
        and before.assigned_to != actor_id
    ):
        pending.append(PendingNotification(
            NotificationType.TASK_UPDATED,
            before.assigned_to,
            TASK_STATUS_TEMPLATE.format(title=after.title, status=after.status.value),
        ))

    return pending


class TaskService:
    def __init__(
        self,
        db: Session,
        ledger: Optional[MembershipLedger] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.ledger = ledger or MembershipLedger(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    def _base_query(self):
        return self.db.query(Task).options(joinedload(Task.project), joinedload(Task.assignee))

    def get_visible_task(self, task_id: int, user_id: int) -> Task:
        """
        Load a task whose project the user is a member of.

        Raises:
            NotFound: if the task does not exist or is not visible to the user
        """
        task = (
            self._base_query()
            .join(ProjectMember, ProjectMember.project_id == Task.project_id)
            .filter(Task.id == task_id, ProjectMember.user_id == user_id)
            .first()
        )
        if task is None:
            logger.info(f"Task {task_id} not found or not visible to user {user_id}")
            raise NotFound("Task not found")
        return task

    def get_task(self, task_id: int, acting_user: User) -> Task:
        return self.get_visible_task(task_id, acting_user.id)

    def list_tasks(
        self,
        acting_user: User,
        project_id: Optional[int] = None,
        status: Optional[TaskStatus] = None,
        assigned_to: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page:
        """
        List tasks across the projects the user belongs to.

        ``project_id`` narrows within that set; it never widens it.
        Ordered by status (TODO, IN_PROGRESS, DONE), due date with nulls last,
        then newest first.
        """
        logger.debug(
            f"User {acting_user.id} listing tasks: project={project_id}, status={status}, "
            f"assigned_to={assigned_to}, page={page}, limit={limit}"
        )
        project_ids = self.ledger.member_project_ids(acting_user.id)
        if not project_ids:
            logger.info(f"User {acting_user.id} has no project memberships, returning empty page")
            return empty_page(page, limit)

        query = self._base_query().filter(Task.project_id.in_(project_ids))
        if project_id is not None:
            query = query.filter(Task.project_id == project_id)
        if status is not None:
            query = query.filter(Task.status == TaskStatus(status))
        if assigned_to is not None:
            query = query.filter(Task.assigned_to == assigned_to)

        query = query.order_by(
            STATUS_ORDER,
            Task.due_date.is_(None),
            Task.due_date.asc(),
            Task.created_at.desc(),
            Task.id.desc(),
        )
        result = paginate(query, page, limit)
        logger.info(f"User {acting_user.id} retrieved {len(result.items)} of {result.total} tasks")
        return result

    def create_task(self, data: Dict[str, Any], acting_user: User) -> Task:
        """
        Create a TODO task in a project the user belongs to.

        Raises:
            ValidationError: if the creator or the requested assignee is not a
                member of the project, or the title is blank
        """
        project_id = data["project_id"]
        assigned_to = data.get("assigned_to")
        logger.debug(f"User {acting_user.id} creating task in project {project_id}: {data.get('title')}")

        if not self.ledger.is_member(project_id, acting_user.id):
            raise ValidationError(NOT_A_MEMBER, errors=[{"field": "project_id", "message": NOT_A_MEMBER}])
        if assigned_to is not None and not self.ledger.is_member(project_id, assigned_to):
            raise ValidationError(
                ASSIGNEE_NOT_A_MEMBER, errors=[{"field": "assigned_to", "message": ASSIGNEE_NOT_A_MEMBER}]
            )

        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError(
                "Validation failed", errors=[{"field": "title", "message": "Task title is required"}]
            )

        due_date = data.get("due_date")
        task = Task(
            title=title,
            description=data.get("description"),
            status=TaskStatus.TODO,
            project_id=project_id,
            assigned_to=assigned_to,
            due_date=to_utc(due_date) if due_date else None,
        )
        self.db.add(task)
        self.db.commit()
        logger.info(f"Task created: {task.title} (ID: {task.id}) in project {project_id} by user {acting_user.id}")

        task = self.get_visible_task(task.id, acting_user.id)
        self.dispatcher.dispatch(
            compute_task_notifications(None, TaskSnapshot.of(task), acting_user.id, task.project.name)
        )
        return task

    def update_task(self, task_id: int, patch: Dict[str, Any], acting_user: User) -> Task:
        """
        Apply a partial update to a visible task.

        ``patch`` holds only the fields the client sent; ``assigned_to: None``
        unassigns the task.

        Raises:
            NotFound: if the task is not visible to the user
            ValidationError: if the new assignee is not a member of the task's project
        """
        logger.debug(f"User {acting_user.id} updating task {task_id}: {patch}")
        task = self.get_visible_task(task_id, acting_user.id)

        new_assignee = patch.get("assigned_to")
        if (
            new_assignee is not None
            and new_assignee != task.assigned_to
            and not self.ledger.is_member(task.project_id, new_assignee)
        ):
            raise ValidationError(
                ASSIGNEE_NOT_A_MEMBER, errors=[{"field": "assigned_to", "message": ASSIGNEE_NOT_A_MEMBER}]
            )

        title = patch["title"].strip() if patch.get("title") is not None else None
        if title == "":
            raise ValidationError(
                "Validation failed", errors=[{"field": "title", "message": "Task title is required"}]
            )

        before = TaskSnapshot.of(task)

        if title is not None:
            task.title = title
        if "description" in patch:
            task.description = patch["description"]
        if patch.get("status") is not None:
            task.status = TaskStatus(patch["status"])
        if "assigned_to" in patch:
            task.assigned_to = new_assignee
        if "due_date" in patch:
            task.due_date = to_utc(patch["due_date"]) if patch["due_date"] else None

        self.db.commit()
        logger.info(f"Task {task_id} updated by user {acting_user.id}")

        task = self.get_visible_task(task_id, acting_user.id)
        after = TaskSnapshot.of(task)
        self.dispatcher.dispatch(
            compute_task_notifications(before, after, acting_user.id, task.project.name)
        )
        return task

    def update_task_status(self, task_id: int, status: TaskStatus, acting_user: User) -> Task:
        return self.update_task(task_id, {"status": status}, acting_user)

    def delete_task(self, task_id: int, acting_user: User) -> None:
        """
        Delete a visible task.

        Raises:
            NotFound: if the task is not visible to the user
            InsufficientPermission: unless the user is project OWNER/ADMIN or the task's assignee
        """
        logger.debug(f"User {acting_user.id} deleting task {task_id}")
        task = self.get_visible_task(task_id, acting_user.id)

        is_manager = self.ledger.has_role(task.project_id, acting_user.id, MANAGER_ROLES)
        if not is_manager and task.assigned_to != acting_user.id:
            logger.info(f"User {acting_user.id} may not delete task {task_id}")
            raise InsufficientPermission("Insufficient permissions to delete this task")

        self.db.delete(task)
        self.db.commit()
        logger.info(f"Task {task_id} deleted by user {acting_user.id}")
