"""Notification routes: the generic list/detail/delete builders over NotificationController."""

from typing import Iterable, Optional

from crudkit.controllers.notification import NotificationController
from crudkit.core.route import ResourceRoute

NOTIFICATION_ACTIONS = ("list", "detail", "delete")


class NotificationRoute(ResourceRoute):
    def __init__(
        self,
        controller: Optional[NotificationController] = None,
        actions: Optional[Iterable[str]] = None,
    ):
        super().__init__(
            "notifications",
            controller=controller or NotificationController(),
            actions=NOTIFICATION_ACTIONS if actions is None else actions,
        )
