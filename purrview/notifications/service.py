"""
Notification Service
Handles creating, reading and expiring user notifications
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from loguru import logger
from sqlalchemy import and_, or_

from ..errors import NotFoundError, StorageError, ValidationError
from ..storage.database import Database
from ..storage.models import Notification, utcnow

SEVERITIES = ("low", "medium", "high")


class NotificationService:
    """Service for managing notifications."""

    def __init__(self, db: Database, expiry_days: int = 30):
        self.db = db
        self.expiry_days = expiry_days

    def create(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        severity: str = "low",
        link_url: Optional[str] = None,
        action_label: Optional[str] = None,
        metadata: Optional[dict] = None,
        expiry_at: Optional[datetime] = None,
    ) -> Notification:
        """
        Create a new notification for a user.

        Args:
            user_id: User to notify
            notification_type: price_alert, achievement_unlock, ...
            title: Notification title
            message: Notification body
            severity: low, medium or high
            link_url: Where the client navigates on click
            action_label: Label for the call-to-action button
            metadata: Type-specific payload
            expiry_at: When the expiry sweep may delete the row
                (defaults to expiry_days after creation)

        Returns:
            Created Notification object
        """
        if severity not in SEVERITIES:
            raise ValidationError(f"Unknown severity: {severity}")

        now = utcnow()
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            severity=severity,
            link_url=link_url,
            action_label=action_label,
            payload=metadata or {},
            is_read=False,
            created_at=now,
            expiry_at=expiry_at or now + timedelta(days=self.expiry_days),
        )

        with self.db.session() as session:
            session.add(notification)
            session.flush()
            session.expunge(notification)

        logger.debug(f"Created {notification_type} notification {notification.id} for {user_id}")
        return notification

    def list_for_user(
        self,
        user_id: str,
        limit: int = 20,
        cursor: Optional[datetime] = None,
        cursor_id: Optional[int] = None,
        unread_only: bool = False,
    ) -> dict[str, Any]:
        """
        Get a page of notifications, newest first.

        Snoozed notifications are hidden until their snooze passes.
        The cursor is the (created_at, id) of the last row of the previous page;
        without cursor_id only created_at bounds the page.
        """
        now = utcnow()
        with self.db.session() as session:
            query = session.query(Notification).filter(
                Notification.user_id == user_id,
                or_(Notification.snoozed_until.is_(None), Notification.snoozed_until < now),
            )
            if unread_only:
                query = query.filter(Notification.is_read.is_(False))
            if cursor is not None and cursor_id is not None:
                query = query.filter(
                    or_(
                        Notification.created_at < cursor,
                        and_(Notification.created_at == cursor, Notification.id < cursor_id),
                    )
                )
            elif cursor is not None:
                query = query.filter(Notification.created_at < cursor)

            rows = (
                query.order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit + 1)
                .all()
            )
            session.expunge_all()

        has_more = len(rows) > limit
        page = rows[:limit]
        return {
            "notifications": page,
            "next_cursor": page[-1].created_at if has_more else None,
            "next_cursor_id": page[-1].id if has_more else None,
            "has_more": has_more,
        }

    def unread_count(self, user_id: str) -> int:
        with self.db.session() as session:
            return (
                session.query(Notification)
                .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
                .count()
            )

    def mark_read(self, user_id: str, notification_id: int) -> Notification:
        """
        Mark one of the caller's notifications as read.

        Raises:
            NotFoundError: the notification does not exist or belongs to someone else
        """
        with self.db.session() as session:
            notification = (
                session.query(Notification)
                .filter(Notification.id == notification_id, Notification.user_id == user_id)
                .first()
            )
            if not notification:
                raise NotFoundError("Notification not found")

            # read is terminal; keep the first read_at
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
                session.flush()

            session.expunge(notification)
            return notification

    def mark_all_read(self, user_id: str) -> int:
        """
        Mark every unread notification of the caller as read.

        Returns:
            Number of notifications changed
        """
        now = utcnow()
        with self.db.session() as session:
            updated = (
                session.query(Notification)
                .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
                .update(
                    {Notification.is_read: True, Notification.read_at: now},
                    synchronize_session=False,
                )
            )

        logger.info(f"Marked {updated} notifications read for {user_id}")
        return updated

    def dismiss_by_type(self, user_id: str, notification_type: str, ids: list[int]) -> int:
        """Mark the given notifications of one type as read; returns the number changed."""
        if not notification_type or not ids:
            raise ValidationError("notification_type and a non-empty ids list are required")

        now = utcnow()
        with self.db.session() as session:
            return (
                session.query(Notification)
                .filter(
                    Notification.user_id == user_id,
                    Notification.notification_type == notification_type,
                    Notification.id.in_(ids),
                    Notification.is_read.is_(False),
                )
                .update(
                    {Notification.is_read: True, Notification.read_at: now},
                    synchronize_session=False,
                )
            )

    def snooze(self, user_id: str, notification_id: int, days: int = 3) -> Notification:
        """Hide a notification from listings for the given number of days."""
        if not isinstance(days, int) or isinstance(days, bool) or days < 1:
            raise ValidationError("Days must be a positive number")

        with self.db.session() as session:
            notification = (
                session.query(Notification)
                .filter(Notification.id == notification_id, Notification.user_id == user_id)
                .first()
            )
            if not notification:
                raise NotFoundError("Notification not found")

            notification.snoozed_until = utcnow() + timedelta(days=days)
            session.flush()
            session.expunge(notification)
            return notification

    def delete(self, user_id: str, notification_id: int) -> None:
        with self.db.session() as session:
            deleted = (
                session.query(Notification)
                .filter(Notification.id == notification_id, Notification.user_id == user_id)
                .delete(synchronize_session=False)
            )
        if not deleted:
            raise NotFoundError("Notification not found")

    def has_unread(self, user_id: str, notification_type: str, **metadata) -> bool:
        """True if an unread notification of this type carries all given metadata values."""
        with self.db.session() as session:
            rows = (
                session.query(Notification.payload)
                .filter(
                    Notification.user_id == user_id,
                    Notification.notification_type == notification_type,
                    Notification.is_read.is_(False),
                )
                .all()
            )

        for (payload,) in rows:
            payload = payload or {}
            if all(payload.get(key) == value for key, value in metadata.items()):
                return True
        return False

    def sweep_expired(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Delete every notification whose expiry_at is strictly before now.

        Runs without a user context. Failures are logged and reported; rows
        missed here are picked up by the next scheduled run.
        """
        now = now or utcnow()
        try:
            with self.db.session() as session:
                deleted = (
                    session.query(Notification)
                    .filter(Notification.expiry_at < now)
                    .delete(synchronize_session=False)
                )
        except StorageError as e:
            logger.error(f"Notification cleanup failed: {e.detail}")
            return {"success": False, "message": "Cleanup failed", "deletedCount": 0}

        logger.info(f"Cleaned up {deleted} expired notifications")
        return {"success": True, "message": "Cleanup completed", "deletedCount": deleted}
