"""
crudkit Backend — Notification Controller
==========================================

What:  The caller's notifications on top of the generic ResourceController.

Behaviour beyond the generic actions:
    - list:   "news_raw" items are sent without their message body, and all
              listed notifications (of the filtered type, if any) are marked
              as read in a detached task. A failure of that task is only
              logged; the list response has already been built.
    - delete: owner-scoped soft delete in one store call; a notification
              owned by someone else looks exactly like a missing one (404).
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from crudkit.core.context import RequestContext
from crudkit.core.controller import ResourceController
from crudkit.core.query import PaginationResult, parse_query
from crudkit.core.resource import ResourceConfig
from crudkit.core.response import json_response
from crudkit.schemas.notification import notification_schemas

logger = logging.getLogger(__name__)

# Raw news items carry the full article; clients fetch it by detail
NEWS_RAW = "news_raw"


def notification_config() -> ResourceConfig:
    return ResourceConfig(
        store_name="Notification",
        schemas=notification_schemas,
        user_key="user_id",
        check_owner=True,
    )


class NotificationController(ResourceController):
    def __init__(self, config: Optional[ResourceConfig] = None):
        super().__init__(config or notification_config())
        # Strong references until the detached tasks finish
        self._background: Set[asyncio.Task] = set()

    async def after_filter(
        self,
        ctx: RequestContext,
        items: List[Dict[str, Any]],
        result: PaginationResult,
    ) -> None:
        for item in items:
            if item.get("type") == NEWS_RAW:
                item["message"] = None

    async def list(self, ctx: RequestContext) -> Dict[str, Any]:
        response = await super().list(ctx)

        notification_type = parse_query(ctx.query).filter.get("type")
        if not isinstance(notification_type, str):
            notification_type = None
        self.schedule_mark_as_read(ctx, ctx.require_user_id(), notification_type)

        return response

    def schedule_mark_as_read(
        self,
        ctx: RequestContext,
        user_id: str,
        notification_type: Optional[str],
    ) -> asyncio.Task:
        task = asyncio.create_task(self._mark_all_as_read(ctx, user_id, notification_type))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _mark_all_as_read(
        self,
        ctx: RequestContext,
        user_id: str,
        notification_type: Optional[str],
    ) -> None:
        try:
            await self.get_store(ctx).mark_all_as_read(user_id, notification_type)
        except Exception as exc:
            ctx.log(["error", self.data_key, "mark-as-read"], exc)

    async def delete(self, ctx: RequestContext) -> Dict[str, Any]:
        async with self.store_errors(ctx, "delete"):
            record = await self.get_store(ctx).delete_one_by_user(
                ctx.path_params.get("id"), ctx.require_user_id()
            )

        return json_response(
            "Delete notification successfully",
            {self.data_key: self.shape(record)},
        )
