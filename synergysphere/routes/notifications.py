"""Notification API endpoints. Users only ever see their own notifications."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from synergysphere import schemas
from synergysphere.auth.dependencies import get_current_user
from synergysphere.config import MAX_PAGE_LIMIT, NOTIFICATION_PAGE_LIMIT
from synergysphere.database import get_db
from synergysphere.models import User
from synergysphere.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"], responses=schemas.ERROR_RESPONSES)


def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


@router.get("", response_model=schemas.NotificationList)
def list_notifications(
    read: Optional[bool] = Query(None, description="Filter by read flag"),
    page: int = Query(1, ge=1, le=schemas.MAX_ID),
    limit: int = Query(NOTIFICATION_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = dispatcher.list_for_user(current_user.id, read, page, limit)
    return {
        "success": True,
        "data": result.items,
        "message": "Notifications retrieved successfully",
        "meta": result.meta(),
    }


@router.put("/mark-all-read", response_model=schemas.ApiResponse[schemas.MarkAllReadResult])
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    updated = dispatcher.mark_all_read(current_user.id)
    return {"success": True, "data": {"updated": updated}, "message": "All notifications marked as read"}


@router.put("/{notification_id}/read", response_model=schemas.ApiResponse[schemas.Notification])
def mark_notification_read(
    notification_id: int = Path(..., ge=1, le=schemas.MAX_ID),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = dispatcher.mark_read(notification_id, current_user.id)
    return {"success": True, "data": notification, "message": "Notification marked as read"}
