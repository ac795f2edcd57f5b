"""Task API endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from synergysphere import schemas
from synergysphere.auth.dependencies import get_current_user
from synergysphere.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from synergysphere.database import get_db
from synergysphere.models import TaskStatus, User
from synergysphere.services.tasks import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"], responses=schemas.ERROR_RESPONSES)


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(db)


@router.post("", response_model=schemas.ApiResponse[schemas.Task], status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Create a task in a project the current user belongs to."""
    created = service.create_task(task.model_dump(), current_user)
    return {"success": True, "data": created, "message": "Task created successfully"}


@router.get("", response_model=schemas.ApiResponse[List[schemas.Task]])
def list_tasks(
    project_id: Optional[int] = Query(None, ge=1, le=schemas.MAX_ID),
    status: Optional[schemas.TaskStatus] = Query(None),
    assigned_to: Optional[int] = Query(None, ge=1, le=schemas.MAX_ID),
    page: int = Query(1, ge=1, le=schemas.MAX_ID),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """List tasks visible to the current user (filtered by their projects)."""
    result = service.list_tasks(
        current_user,
        project_id=project_id,
        status=TaskStatus(status.value) if status else None,
        assigned_to=assigned_to,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "data": result.items,
        "message": "Tasks retrieved successfully",
        "meta": result.meta(),
    }


@router.get("/{task_id}", response_model=schemas.ApiResponse[schemas.Task])
def get_task(
    task_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = service.get_task(task_id, current_user)
    return {"success": True, "data": task, "message": "Task retrieved successfully"}


@router.put("/{task_id}", response_model=schemas.ApiResponse[schemas.Task])
def update_task(
    task_update: schemas.TaskUpdate,
    task_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Partially update a task. Sending ``assigned_to: null`` unassigns it."""
    patch = task_update.model_dump(exclude_unset=True)
    if patch.get("status") is not None:
        patch["status"] = TaskStatus(patch["status"].value)
    task = service.update_task(task_id, patch, current_user)
    return {"success": True, "data": task, "message": "Task updated successfully"}


@router.patch("/{task_id}/status", response_model=schemas.ApiResponse[schemas.Task])
def update_task_status(
    status_update: schemas.TaskStatusUpdate,
    task_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = service.update_task_status(task_id, TaskStatus(status_update.status.value), current_user)
    return {"success": True, "data": task, "message": "Task status updated successfully"}


@router.delete("/{task_id}", response_model=schemas.ApiResponse)
def delete_task(
    task_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Delete a task (project OWNER/ADMIN or the task's assignee)."""
    service.delete_task(task_id, current_user)
    return {"success": True, "data": None, "message": "Task deleted successfully"}
