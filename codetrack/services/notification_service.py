"""
Notification store for link suspension / reactivation events.

Rows are append-only except for the read flag. Optional listeners receive each
notification after the transaction that created it commits (one-way outbound
event for UI or push collaborators).
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from codetrack.database.models import Notification
from codetrack.services.base import BaseService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """Creates, lists and marks student notifications."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._listeners: List[Callable[[Notification], None]] = []

    def add_listener(self, listener: Callable[[Notification], None]):
        """Register a callback invoked with each committed notification."""
        self._listeners.append(listener)

    def emit(self, session: AsyncSession, student_id: str, title: str, message: str,
             status_tag: str) -> Notification:
        """Add a notification to the caller's transaction (caller commits)."""
        notification = Notification(
            student_id=student_id,
            title=title,
            message=message,
            status_tag=status_tag,
            read=False
        )
        session.add(notification)
        return notification

    def dispatch(self, notification: Notification):
        """Hand a committed notification to listeners; listener failures are logged only."""
        for listener in self._listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.warning(f"Notification listener failed for student {notification.student_id}: {e}")

    async def list_notifications(self, student_id: str, unread_only: bool = False) -> List[Notification]:
        """Newest-first notifications for a student."""
        async with self.get_session() as session:
            stmt = select(Notification).where(Notification.student_id == student_id)
            if unread_only:
                stmt = stmt.where(Notification.read == False)  # noqa: E712
            stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def mark_notification_read(self, notification_id: int, student_id: Optional[str] = None) -> bool:
        """Set the read flag; returns False when no matching notification exists."""
        async with self.get_session() as session:
            stmt = update(Notification).where(Notification.id == notification_id)
            if student_id is not None:
                stmt = stmt.where(Notification.student_id == student_id)
            result = await session.execute(stmt.values(read=True))
            return result.rowcount > 0

    async def mark_all_read(self, student_id: str) -> int:
        """Mark every notification of a student as read; returns the number updated."""
        async with self.get_session() as session:
            result = await session.execute(
                update(Notification)
                .where(Notification.student_id == student_id, Notification.read == False)  # noqa: E712
                .values(read=True)
            )
            return result.rowcount
