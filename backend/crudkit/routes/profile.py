"""
crudkit Backend — Profile Routes
=================================

What:  Route table for ProfileController.

Route names (usable in `routes` / `except_routes`):
    profile          GET   /profile               current profile + settings
    update-profile   POST  /profile               update profile fields
    upload-avatar    POST  /profile/avatar        multipart "file"
    settings         GET   /settings              app settings (public)
    update-settings  POST  /settings              merge user settings
    otp              GET   /profile/new-otp       issue a verification code
    confirm-otp      POST  /profile/confirm-otp   confirm it

Example:
    ProfileRoute(except_routes=["upload-avatar"]).routes
"""

from typing import Callable, Dict, Iterable, List, Optional

from crudkit.controllers.profile import ProfileController
from crudkit.core.route import RouteDefinition, create_route
from crudkit.exceptions import InvalidConfiguration
from crudkit.schemas.common import basic_response, data_payload
from crudkit.schemas.profile import (
    AppSettingsSchema,
    OtpConfirmData,
    OtpResponse,
    ProfileResponse,
    ProfileUpdateData,
    UserSettingsSchema,
    UserSettingsUpdateData,
)

PROFILE_ROUTES = (
    "profile",
    "update-profile",
    "upload-avatar",
    "settings",
    "update-settings",
    "otp",
    "confirm-otp",
)

ProfileEnvelope = basic_response(
    "ProfileDetail", {"profile": ProfileResponse, "userSettings": UserSettingsSchema}
)


class ProfileRoute:
    """
    Builds the profile routes.

    Args:
        controller:    ProfileController instance (default one when omitted)
        routes:        Route names to include (all by default)
        except_routes: Route names to leave out
    """

    def __init__(
        self,
        controller: Optional[ProfileController] = None,
        routes: Optional[Iterable[str]] = None,
        except_routes: Optional[Iterable[str]] = None,
    ):
        self.controller = controller or ProfileController()

        names = list(routes) if routes else list(PROFILE_ROUTES)
        excluded = set(except_routes or ())
        unknown = (set(names) | excluded) - set(PROFILE_ROUTES)
        if unknown:
            raise InvalidConfiguration(f"Unknown profile routes: {sorted(unknown)}")

        builders = self.builders()
        self.names = [name for name in names if name not in excluded]
        self.routes: List[RouteDefinition] = [create_route(builders[name]()) for name in self.names]

    def builders(self) -> Dict[str, Callable[[], RouteDefinition]]:
        return {
            "profile": self.profile_route,
            "update-profile": self.update_profile_route,
            "upload-avatar": self.upload_avatar_route,
            "settings": self.settings_route,
            "update-settings": self.update_settings_route,
            "otp": self.otp_route,
            "confirm-otp": self.confirm_otp_route,
        }

    def profile_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="GET",
            path="/profile",
            name="profile",
            handler=self.controller.get_profile,
            description="Get profile",
            notes="Returns the current user's profile and settings",
            tags=["api", "profile", "get"],
            response=ProfileEnvelope,
        )

    def update_profile_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="POST",
            path="/profile",
            name="update-profile",
            handler=self.controller.update_profile,
            description="Update profile",
            notes="Updates the current user's profile fields",
            tags=["api", "profile", "update"],
            payload=data_payload("ProfileUpdate", ProfileUpdateData),
            response=basic_response("ProfileUpdate", {"profile": ProfileResponse}),
        )

    def upload_avatar_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="POST",
            path="/profile/avatar",
            name="upload-avatar",
            handler=self.controller.upload_avatar,
            description="Upload avatar",
            notes="Stores the uploaded image and its resized variants",
            tags=["api", "profile", "avatar"],
            upload=True,
            response=basic_response("AvatarUpload", {"profile": ProfileResponse}),
        )

    def settings_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="GET",
            path="/settings",
            name="settings",
            handler=self.controller.get_app_settings,
            description="Get application settings",
            notes="Returns the default application settings",
            tags=["api", "settings", "get"],
            auth=False,
            response=basic_response("AppSettings", {"settings": AppSettingsSchema}),
        )

    def update_settings_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="POST",
            path="/settings",
            name="update-settings",
            handler=self.controller.update_settings,
            description="Update user settings",
            notes="Merges the given keys into the user's settings",
            tags=["api", "settings", "update"],
            payload=data_payload("SettingsUpdate", UserSettingsUpdateData),
            response=basic_response("SettingsUpdate", {"userSettings": UserSettingsSchema}),
        )

    def otp_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="GET",
            path="/profile/new-otp",
            name="otp",
            handler=self.controller.request_verification_code,
            description="Request verification code",
            notes="Issues a new one-time verification code",
            tags=["api", "profile", "otp"],
            response=basic_response("OtpIssue", {"otp": OtpResponse}),
        )

    def confirm_otp_route(self) -> RouteDefinition:
        return RouteDefinition(
            method="POST",
            path="/profile/confirm-otp",
            name="confirm-otp",
            handler=self.controller.confirm_verification_code,
            description="Confirm verification code",
            notes="Verifies the account with the issued code",
            tags=["api", "profile", "otp", "confirm"],
            payload=data_payload("OtpConfirm", OtpConfirmData),
            response=ProfileEnvelope,
        )
