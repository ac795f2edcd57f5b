"""
Project lifecycle: creation, update, deletion and membership management.

Permission checks go through the MembershipLedger. Projects are only visible
to their members; a non-member looking up a project gets the same NotFound as
for a project that does not exist.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from synergysphere.auth.permissions import MANAGER_ROLES, MembershipLedger
from synergysphere.errors import Conflict, NotFound, OwnerRemovalError, ValidationError
from synergysphere.models import MemberRole, NotificationType, Project, ProjectMember, Task, TaskStatus, User
from synergysphere.services.notifications import PROJECT_INVITATION_TEMPLATE, NotificationDispatcher
from synergysphere.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "name", "message": "Project name must be at least 2 characters"}],
        )
    return cleaned


class ProjectService:
    def __init__(
        self,
        db: Session,
        ledger: Optional[MembershipLedger] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.ledger = ledger or MembershipLedger(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)

    # ------------------------------------------------------------------ reads

    def _visible_query(self, user_id: int):
        return (
            self.db.query(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .filter(ProjectMember.user_id == user_id)
            .options(
                joinedload(Project.owner),
                selectinload(Project.memberships).joinedload(ProjectMember.user),
            )
        )

    def get_visible_project(self, project_id: int, user_id: int) -> Project:
        """
        Load a project the user is a member of.

        Raises:
            NotFound: if the project does not exist or the user is not a member
        """
        project = self._visible_query(user_id).filter(Project.id == project_id).first()
        if project is None:
            logger.info(f"Project {project_id} not found or not visible to user {user_id}")
            raise NotFound("Project not found")
        return project

    def counts(self, project_id: int) -> Dict[str, int]:
        """Task, member and completed-task counts, computed on every call."""
        total_tasks = self.db.query(Task).filter(Task.project_id == project_id).count()
        completed = (
            self.db.query(Task)
            .filter(Task.project_id == project_id, Task.status == TaskStatus.DONE)
            .count()
        )
        members = self.db.query(ProjectMember).filter(ProjectMember.project_id == project_id).count()
        return {"tasks": total_tasks, "members": members, "completed_tasks": completed}

    def annotate(self, project: Project) -> Dict[str, Any]:
        """Project fields plus owner, memberships and live counts."""
        return {
            "id": project.id,
            "name": project.name,
            "description": project.description,
            "owner_id": project.owner_id,
            "owner": project.owner,
            "memberships": project.memberships,
            "counts": self.counts(project.id),
            "created_at": project.created_at,
            "updated_at": project.updated_at,
        }

    def list_projects(self, acting_user: User, page: int, limit: int) -> Page:
        """Projects the user is a member of, newest first, each annotated with counts."""
        logger.debug(f"User {acting_user.id} listing projects: page={page}, limit={limit}")
        query = self._visible_query(acting_user.id).order_by(Project.created_at.desc(), Project.id.desc())
        result = paginate(query, page, limit)
        result.items = [self.annotate(project) for project in result.items]
        logger.info(f"User {acting_user.id} retrieved {len(result.items)} of {result.total} projects")
        return result

    def get_project(self, project_id: int, acting_user: User) -> Dict[str, Any]:
        return self.annotate(self.get_visible_project(project_id, acting_user.id))

    def list_members(self, project_id: int, acting_user: User) -> List[ProjectMember]:
        project = self.get_visible_project(project_id, acting_user.id)
        return sorted(project.memberships, key=lambda m: (m.joined_at, m.user_id))

    # -------------------------------------------------------------- mutations

    def create_project(self, name: str, description: Optional[str], acting_user: User) -> Dict[str, Any]:
        """
        Create a project owned by ``acting_user``.

        The project row and the owner's OWNER membership are committed together.
        """
        name = _clean_name(name)
        logger.debug(f"User {acting_user.id} creating project: {name}")

        project = Project(name=name, description=description, owner_id=acting_user.id)
        self.db.add(project)
        self.db.flush()
        self.db.add(ProjectMember(project_id=project.id, user_id=acting_user.id, role=MemberRole.OWNER))
        self.db.commit()

        logger.info(f"Project created: {project.name} (ID: {project.id}) by user {acting_user.id}")
        return self.get_project(project.id, acting_user)

    def update_project(self, project_id: int, patch: Dict[str, Any], acting_user: User) -> Dict[str, Any]:
        """
        Apply a partial update of name/description.

        Raises:
            InsufficientPermission: unless the user is OWNER or ADMIN of the project
        """
        logger.debug(f"User {acting_user.id} updating project {project_id}: {patch}")
        self.ledger.assert_role(project_id, acting_user.id, MANAGER_ROLES)

        project = self.db.query(Project).filter(Project.id == project_id).first()
        if project is None:
            raise NotFound("Project not found")

        if patch.get("name") is not None:
            project.name = _clean_name(patch["name"])
        if "description" in patch:
            project.description = patch["description"]

        self.db.commit()
        logger.info(f"Project updated: {project.name} (ID: {project_id}) by user {acting_user.id}")
        return self.get_project(project_id, acting_user)

    def delete_project(self, project_id: int, acting_user: User) -> None:
        """
        Delete a project with its memberships and tasks.

        Raises:
            InsufficientPermission: unless the user is the project's OWNER
        """
        logger.debug(f"User {acting_user.id} deleting project {project_id}")
        self.ledger.assert_role(
            project_id, acting_user.id, {MemberRole.OWNER}, "Only project owner can delete the project"
        )

        project = self.db.query(Project).filter(Project.id == project_id).first()
        self.db.delete(project)
        self.db.commit()
        logger.info(f"Project {project_id} deleted by user {acting_user.id}")

    def add_member(
        self, project_id: int, email: str, role: MemberRole, acting_user: User
    ) -> ProjectMember:
        """
        Add the user with ``email`` to the project and send them an invitation.

        Raises:
            InsufficientPermission: unless the acting user is OWNER or ADMIN
            ValidationError: if ``role`` is OWNER
            NotFound: if no user has this email
            Conflict: if the user is already a member
        """
        logger.debug(f"User {acting_user.id} adding {email} to project {project_id} as {role}")
        self.ledger.assert_role(project_id, acting_user.id, MANAGER_ROLES)

        role = MemberRole(role or MemberRole.MEMBER)
        if role == MemberRole.OWNER:
            raise ValidationError(
                "Validation failed",
                errors=[{"field": "role", "message": "Role must be MEMBER or ADMIN"}],
            )

        user = self.db.query(User).filter(User.email == email).first()
        if user is None:
            logger.info(f"User with email {email} not found")
            raise NotFound("User not found")

        if self.ledger.is_member(project_id, user.id):
            raise Conflict("User is already a member of this project")

        membership = ProjectMember(project_id=project_id, user_id=user.id, role=role)
        self.db.add(membership)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent add for the same user
            self.db.rollback()
            logger.info(f"Concurrent membership insert for user {user.id} in project {project_id}")
            raise Conflict("User is already a member of this project")

        project = self.db.query(Project).filter(Project.id == project_id).first()
        logger.info(f"User {user.id} added to project {project_id} with role {role.value}")

        self.dispatcher.notify(
            NotificationType.PROJECT_INVITATION,
            user.id,
            PROJECT_INVITATION_TEMPLATE.format(project=project.name),
        )
        return (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user.id)
            .options(joinedload(ProjectMember.user))
            .first()
        )

    def remove_member(self, project_id: int, target_user_id: int, acting_user: User) -> None:
        """
        Remove a member from the project.

        Tasks in this project assigned to the removed user become unassigned
        in the same transaction.

        Raises:
            InsufficientPermission: unless the acting user is OWNER or ADMIN
            OwnerRemovalError: if the target is the project OWNER
            NotFound: if the target is not a member
        """
        logger.debug(f"User {acting_user.id} removing member {target_user_id} from project {project_id}")
        self.ledger.assert_role(project_id, acting_user.id, MANAGER_ROLES)

        target_role = self.ledger.get_role(project_id, target_user_id)
        if target_role == MemberRole.OWNER:
            logger.warning(f"User {acting_user.id} attempted to remove the owner of project {project_id}")
            raise OwnerRemovalError()
        if target_role is None:
            raise NotFound("Membership not found")

        unassigned = (
            self.db.query(Task)
            .filter(Task.project_id == project_id, Task.assigned_to == target_user_id)
            .update({Task.assigned_to: None}, synchronize_session=False)
        )
        self.db.query(ProjectMember).filter(
            ProjectMember.project_id == project_id, ProjectMember.user_id == target_user_id
        ).delete(synchronize_session=False)
        self.db.commit()

        logger.info(
            f"User {target_user_id} removed from project {project_id}; "
            f"{unassigned} task(s) unassigned"
        )
