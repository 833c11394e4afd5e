# Models package init
"""
crudkit Backend — ORM Models
=============================

Importing this package registers every model with Base.metadata, which
Alembic and Database.create_all() rely on.
"""

from crudkit.models.base import RecordStatus, ResourceRecord
from crudkit.models.notification import Notification
from crudkit.models.user import User

__all__ = ["Notification", "RecordStatus", "ResourceRecord", "User"]
