"""
crudkit Backend — User Store
=============================

What:  Users table access: token lookup for authentication plus the narrow
       updates the profile feature performs (avatar, OTP state, settings).
Why:   Narrow updates touch only their own columns, so a concurrent profile
       edit is never overwritten by a stale copy of the row.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select

from crudkit.database import Database
from crudkit.exceptions import NotFoundError
from crudkit.models.user import User
from crudkit.store.sqlalchemy_store import SqlAlchemyStore

logger = logging.getLogger(__name__)


class UserStore(SqlAlchemyStore):
    def __init__(self, db: Database):
        super().__init__(db, User)

    async def get_one_by_token(self, token: str) -> Optional[User]:
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.access_token == token))
            return result.scalar_one_or_none()

    async def _update_columns(self, uid: str, values: Dict[str, Any]) -> User:
        async with self.db.session() as session:
            user = await session.get(User, uid)
            if user is None:
                raise NotFoundError(resource="User", resource_id=uid)
            for column, value in values.items():
                setattr(user, column, value)
            await session.flush()
        return user

    async def update_avatar(self, uid: str, avatar: str) -> User:
        """Store the avatar JSON text ({"small": "avatar/...", ...})."""
        user = await self._update_columns(uid, {"avatar": avatar, "updated_by": uid})
        logger.info("Avatar updated for user %s", uid)
        return user

    async def update_verification(
        self,
        uid: str,
        code: Optional[str],
        expires_at: Optional[datetime],
    ) -> User:
        return await self._update_columns(
            uid, {"verification_code": code, "verification_expires_at": expires_at}
        )

    async def mark_verified(self, uid: str) -> User:
        """Verified is terminal: the outstanding code is cleared."""
        return await self._update_columns(
            uid,
            {
                "is_verified": True,
                "verification_code": None,
                "verification_expires_at": None,
                "updated_by": uid,
            },
        )

    async def update_settings(self, uid: str, settings: str) -> User:
        return await self._update_columns(uid, {"settings": settings, "updated_by": uid})
