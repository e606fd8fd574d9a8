"""
Notification service.

``notify`` is the contract other apps depend on: fire-and-forget, never
raising. Inbox operations (mark read) back the notifications API.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction

from core.services import BaseService, ServiceResult
from notifications.models import Notification

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Methods:
        notify: Record a notification for a user (never raises)
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all of a user's notifications as read
    """

    @classmethod
    def notify(
        cls,
        user_id,
        kind: str,
        title: str,
        message: str,
        link: str = "",
        data: dict | None = None,
    ) -> Notification | None:
        """
        Record a notification for ``user_id``.

        Failures are logged and swallowed: callers have already committed
        their state change and must not see an exception from here.

        Returns:
            The created Notification, or None if recording failed
        """
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient_id=user_id,
                    kind=kind,
                    title=title,
                    message=message,
                    link=link,
                    data=data or {},
                )
        except Exception:
            cls.get_logger().exception(
                "Failed to record notification",
                extra={"user_id": str(user_id), "kind": kind},
            )
            return None

        cls.get_logger().info(
            "Notification recorded",
            extra={
                "notification_id": notification.id,
                "user_id": str(user_id),
                "kind": kind,
            },
        )
        return notification

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read (idempotent).

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.id:
            cls.get_logger().warning(
                f"User {user.id} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True
        )
        cls.get_logger().info(f"Marked {count} notifications as read for user {user.id}")
        return ServiceResult.success(count)
