# Store package init
"""
crudkit Backend — Stores
=========================

What:  Data access behind the generic controllers.

Module Inventory:
    - base.py:               Store interface + DataStore registry
    - sqlalchemy_store.py:   Generic async SQLAlchemy implementation
    - user_store.py:         Users (token lookup, avatar, OTP state, settings)
    - notification_store.py: Notifications (mark-all-as-read, owner delete)
"""

from crudkit.store.base import DataStore, Store
from crudkit.store.notification_store import NotificationStore
from crudkit.store.sqlalchemy_store import SqlAlchemyStore
from crudkit.store.user_store import UserStore

__all__ = ["DataStore", "NotificationStore", "SqlAlchemyStore", "Store", "UserStore"]
