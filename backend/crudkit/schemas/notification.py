"""
crudkit Backend — Notification Schemas
=======================================

What:  API contracts for notifications, grouped as ResourceSchemas so the
       generic route builders can derive every endpoint's models.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from crudkit.core.resource import ResourceSchemas
from crudkit.schemas.common import CamelModel


class NotificationResponse(CamelModel):
    uid: str
    user_id: str
    type: str
    title: Optional[str] = None
    message: Optional[str] = Field(default=None, description="Null for news_raw notifications")
    is_read: bool = False
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationListItem(CamelModel):
    """Compact representation for list views."""

    uid: str
    type: str
    title: Optional[str] = None
    message: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None


class NotificationCreateRequest(CamelModel):
    type: str = Field(default="system", max_length=50)
    title: Optional[str] = Field(default=None, max_length=255)
    message: Optional[str] = None


class NotificationUpdateRequest(CamelModel):
    title: Optional[str] = Field(default=None, max_length=255)
    message: Optional[str] = None
    is_read: Optional[bool] = None


notification_schemas = ResourceSchemas(
    response=NotificationResponse,
    response_item=NotificationListItem,
    create_request=NotificationCreateRequest,
    update_request=NotificationUpdateRequest,
)
