"""
Project API endpoints.

Thin HTTP mapping over ProjectService; all permission and visibility rules
live in the service.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from synergysphere import schemas
from synergysphere.auth.dependencies import get_current_user
from synergysphere.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from synergysphere.database import get_db
from synergysphere.models import MemberRole, User
from synergysphere.services.projects import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects", tags=["projects"], responses=schemas.ERROR_RESPONSES)


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


@router.post(
    "",
    response_model=schemas.ApiResponse[schemas.ProjectWithMembers],
    status_code=status.HTTP_201_CREATED,
)
def create_project(
    project: schemas.ProjectCreate,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Create a project; the creator becomes its OWNER."""
    created = service.create_project(project.name, project.description, current_user)
    return {"success": True, "data": created, "message": "Project created successfully"}


@router.get("", response_model=schemas.ApiResponse[List[schemas.ProjectWithMembers]])
def list_projects(
    page: int = Query(1, ge=1, le=schemas.MAX_ID),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """List projects the current user is a member of."""
    result = service.list_projects(current_user, page, limit)
    return {
        "success": True,
        "data": result.items,
        "message": "Projects retrieved successfully",
        "meta": result.meta(),
    }


@router.get("/{project_id}", response_model=schemas.ApiResponse[schemas.ProjectWithMembers])
def get_project(
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    project = service.get_project(project_id, current_user)
    return {"success": True, "data": project, "message": "Project retrieved successfully"}


@router.put("/{project_id}", response_model=schemas.ApiResponse[schemas.ProjectWithMembers])
def update_project(
    project_update: schemas.ProjectUpdate,
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Update project name/description (requires OWNER or ADMIN)."""
    patch = project_update.model_dump(exclude_unset=True)
    project = service.update_project(project_id, patch, current_user)
    return {"success": True, "data": project, "message": "Project updated successfully"}


@router.delete("/{project_id}", response_model=schemas.ApiResponse)
def delete_project(
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Delete a project with its tasks and memberships (OWNER only)."""
    service.delete_project(project_id, current_user)
    return {"success": True, "data": None, "message": "Project deleted successfully"}


# ============== Project Members ==============

@router.get("/{project_id}/members", response_model=schemas.ApiResponse[List[schemas.Membership]])
def list_members(
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    members = service.list_members(project_id, current_user)
    return {"success": True, "data": members, "message": "Members retrieved successfully"}


@router.post("/{project_id}/members", response_model=schemas.ApiResponse[schemas.Membership])
def add_member(
    member: schemas.MemberAdd,
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Add a registered user by email (requires OWNER or ADMIN)."""
    membership = service.add_member(project_id, member.email, MemberRole(member.role.value), current_user)
    return {"success": True, "data": membership, "message": "Member added successfully"}


@router.delete("/{project_id}/members/{user_id}", response_model=schemas.ApiResponse)
def remove_member(
    project_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    user_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Remove a member (requires OWNER or ADMIN; the OWNER cannot be removed)."""
    service.remove_member(project_id, user_id, current_user)
    return {"success": True, "data": None, "message": "Member removed successfully"}
