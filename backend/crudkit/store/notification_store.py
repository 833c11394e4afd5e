"""Notifications table access, including the owner-scoped bulk operations."""

import logging
from typing import Optional

from sqlalchemy import select, update

from crudkit.database import Database
from crudkit.exceptions import NotFoundError
from crudkit.models.base import RecordStatus, utcnow
from crudkit.models.notification import Notification
from crudkit.store.sqlalchemy_store import SqlAlchemyStore

logger = logging.getLogger(__name__)


class NotificationStore(SqlAlchemyStore):
    def __init__(self, db: Database):
        super().__init__(db, Notification)

    async def mark_all_as_read(self, user_id: str, type: Optional[str] = None) -> int:
        """Mark every unread notification of a user (optionally one type) as read."""
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, updated_at=utcnow())
        )
        if type:
            stmt = stmt.where(Notification.type == type)

        async with self.db.session() as session:
            result = await session.execute(stmt)

        logger.debug("Marked %d notifications as read for %s", result.rowcount, user_id)
        return result.rowcount

    async def delete_one_by_user(self, uid: str, user_id: str) -> Notification:
        """
        Soft-delete a notification owned by `user_id`.

        A record owned by someone else is reported exactly like a missing
        one, so callers cannot probe other users' notification ids.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(Notification).where(
                    Notification.uid == uid,
                    Notification.user_id == user_id,
                )
            )
            notification = result.scalar_one_or_none()
            if notification is None:
                raise NotFoundError(resource="Notification", resource_id=uid)
            notification.status = RecordStatus.DELETED.value
            await session.flush()
        return notification
