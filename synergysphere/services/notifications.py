"""
Notification dispatcher.

Notifications are created only here, synchronously, as a side effect of a
committed project or task mutation. A dispatch failure is logged and never
propagates to the operation that triggered it.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from synergysphere.errors import NotFound
from synergysphere.models import Notification, NotificationType
from synergysphere.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

PROJECT_INVITATION_TEMPLATE = 'You have been added to project "{project}"'
TASK_CREATED_ASSIGNED_TEMPLATE = 'You have been assigned a new task: "{title}" in project "{project}"'
TASK_REASSIGNED_TEMPLATE = 'You have been assigned to task: "{title}" in project "{project}"'
TASK_STATUS_TEMPLATE = 'Task "{title}" status changed to {status}'


class PendingNotification(NamedTuple):
    """A notification decided on but not yet persisted."""
    type: NotificationType
    recipient_id: int
    message: str


class NotificationDispatcher:
    def __init__(self, db: Session):
        self.db = db

    def notify(self, type: NotificationType, recipient_id: int, message: str) -> Optional[Notification]:
        """
        Persist one notification for ``recipient_id``.

        Returns:
            The created Notification, or None if it could not be stored.
            Failures roll back only the notification insert.
        """
        logger.debug(f"Dispatching {type.value} to user {recipient_id}")
        try:
            notification = Notification(type=type, message=message, user_id=recipient_id, read=False)
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to dispatch {type.value} notification to user {recipient_id}")
            return None

        logger.info(f"Notification {notification.id} ({type.value}) sent to user {recipient_id}")
        return notification

    def dispatch(self, pending: Iterable[PendingNotification]) -> List[Notification]:
        """Persist each pending notification independently."""
        sent = []
        for item in pending:
            notification = self.notify(item.type, item.recipient_id, item.message)
            if notification is not None:
                sent.append(notification)
        return sent

    def list_for_user(self, user_id: int, read: Optional[bool], page: int, limit: int) -> Page:
        """
        List a user's notifications, newest first.

        The page meta also carries the user's total unread count.
        """
        logger.debug(f"Listing notifications for user {user_id}: read={read}, page={page}, limit={limit}")
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if read is not None:
            query = query.filter(Notification.read == read)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())

        result = paginate(query, page, limit)
        result.extra["unread"] = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .count()
        )
        return result

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        """
        Mark one of the user's notifications as read.

        Ownership is part of the lookup, so another user's notification
        is reported as missing.

        Raises:
            NotFound: if no notification with this id belongs to ``user_id``
        """
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if notification is None:
            logger.info(f"Notification {notification_id} not found for user {user_id}")
            raise NotFound("Notification not found")

        if not notification.read:
            notification.read = True
            self.db.commit()
            self.db.refresh(notification)
        logger.info(f"Notification {notification_id} marked read by user {user_id}")
        return notification

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread notification of the user as read. Returns the number updated."""
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .update({Notification.read: True}, synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Marked {updated} notifications read for user {user_id}")
        return updated
