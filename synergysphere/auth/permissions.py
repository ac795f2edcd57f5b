"""
Project membership ledger.

Every permission decision about a project or its tasks is expressed through
``has_role``, ``is_member`` or ``get_role``. The ledger is a pure lookup over
the current ProjectMember rows; it never mutates state.

The user's global role is deliberately ignored here: only project membership
grants project permissions.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from synergysphere.errors import InsufficientPermission
from synergysphere.models import MemberRole, ProjectMember

logger = logging.getLogger(__name__)

MANAGER_ROLES = frozenset({MemberRole.OWNER, MemberRole.ADMIN})


class MembershipLedger:
    """Read-only view of project memberships bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    def get_role(self, project_id: int, user_id: int) -> Optional[MemberRole]:
        """
        Look up the role a user holds in a project.

        Args:
            project_id: ID of the project
            user_id: ID of the user

        Returns:
            The user's MemberRole, or None if the user is not a member
        """
        membership = (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
            .first()
        )
        if membership is None:
            logger.debug(f"User {user_id} has no membership in project {project_id}")
            return None
        return membership.role

    def is_member(self, project_id: int, user_id: int) -> bool:
        """Check whether the user holds any membership in the project."""
        return self.get_role(project_id, user_id) is not None

    def has_role(self, project_id: int, user_id: int, allowed_roles: Iterable[MemberRole]) -> bool:
        """
        Check whether the user's membership role is one of ``allowed_roles``.

        Args:
            project_id: ID of the project
            user_id: ID of the user
            allowed_roles: Roles that satisfy the check

        Returns:
            True if the user is a member with an allowed role, False otherwise

        Example:
            >>> ledger.has_role(project_id, user.id, {MemberRole.OWNER, MemberRole.ADMIN})
        """
        role = self.get_role(project_id, user_id)
        allowed = set(allowed_roles)
        has_permission = role is not None and role in allowed

        if has_permission:
            logger.debug(f"User {user_id} has role '{role.value}' in project {project_id}, permission granted")
        elif role is not None:
            logger.info(
                f"User {user_id} has role '{role.value}' in project {project_id}, "
                f"but one of {sorted(r.value for r in allowed)} is required"
            )
        return has_permission

    def assert_role(
        self,
        project_id: int,
        user_id: int,
        allowed_roles: Iterable[MemberRole],
        message: str = "Insufficient permissions",
    ) -> None:
        """
        Require one of ``allowed_roles`` or raise.

        Raises:
            InsufficientPermission: if ``has_role`` is False
        """
        if not self.has_role(project_id, user_id, allowed_roles):
            raise InsufficientPermission(message)

    def member_project_ids(self, user_id: int) -> List[int]:
        """
        Get IDs of all projects the user is a member of.

        This is the visibility set for every project and task listing.
        """
        rows = self.db.query(ProjectMember.project_id).filter(ProjectMember.user_id == user_id).all()
        project_ids = [row.project_id for row in rows]
        logger.debug(f"User {user_id} is a member of {len(project_ids)} projects")
        return project_ids
