# Controllers package init
"""
crudkit Backend — Feature Controllers
======================================

Module Inventory:
    - profile.py:      ProfileController (profile, settings, avatar, OTP)
    - notification.py: NotificationController (ResourceController subclass)
"""

from crudkit.controllers.notification import NotificationController
from crudkit.controllers.profile import ProfileController

__all__ = ["NotificationController", "ProfileController"]
