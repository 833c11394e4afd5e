# Routes package init
"""
crudkit Backend — API Routes Package
=====================================

What:  Route tables for every feature, registered on the app in main.py.

Route Inventory:
    - profile.py:      GET/POST /profile, POST /profile/avatar,
                       GET/POST /settings, GET /profile/new-otp,
                       POST /profile/confirm-otp
    - notification.py: GET /notifications, GET /notifications/{uid},
                       DELETE /notifications/{id}
    - health.py:       GET /health (service health check)

Design Principle:
    Routes are declarations only; the endpoint glue lives in
    crudkit.core.route and the behaviour in crudkit.controllers.
"""

from typing import List

from crudkit.core.route import RouteDefinition
from crudkit.routes.notification import NotificationRoute
from crudkit.routes.profile import ProfileRoute


def build_routes() -> List[RouteDefinition]:
    """Every feature route, normalized and ready for register_routes()."""
    return [*ProfileRoute().routes, *NotificationRoute().routes]


__all__ = ["NotificationRoute", "ProfileRoute", "build_routes"]
