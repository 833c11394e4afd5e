"""
crudkit Backend — Profile Controller
=====================================

What:  The authenticated caller's own profile: read/update, application
       settings, avatar upload and phone/e-mail verification (OTP).
Who:   Routes built by ProfileRoute; the caller's User record arrives in
       ctx.credentials.profile.

Verification State Machine:
    Unverified ──request_verification_code──▶ CodeRequested
    CodeRequested ──request_verification_code──▶ CodeRequested (new code)
    CodeRequested ──confirm (valid, unexpired)──▶ Verified
    Verified: terminal; both operations answer 310

    confirm_verification_code checks, first match wins:
        310 already verified → 309 expired/no code → 311 mismatch

Settings:
    Stored settings are JSON text. Empty settings fall back to the
    configured defaults; updates merge onto them and never drop keys the
    request doesn't mention.
"""

import json
import logging
import secrets
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from crudkit.core.context import RequestContext
from crudkit.core.controller import log_errors, validation_errors
from crudkit.core.response import json_response
from crudkit.exceptions import (
    AlreadyVerified,
    Unauthorized,
    ValidationError,
    VerificationExpired,
    VerificationMismatch,
)
from crudkit.schemas.profile import (
    AppSettingsSchema,
    OtpResponse,
    ProfileRequest,
    ProfileResponse,
    UserSettingsSchema,
)
from crudkit.services.file_service import UploadOptions

logger = logging.getLogger(__name__)

# Upload path segment for avatars (under storage_root)
AVATAR_PATH = "avatar"

# Upstream OTP failures are client-facing 400s
VERIFICATION_CODES = {"307": 400, "308": 400}


class ProfileController:
    """
    Profile feature controller.

    Subclasses may override after_insert (runs for a caller registered by
    this very request) and before_get_profile (runs before every profile
    read and may raise to abort it).
    """

    def __init__(
        self,
        user_schema: Type[BaseModel] = ProfileResponse,
        user_request_schema: Type[BaseModel] = ProfileRequest,
        user_settings_schema: Type[BaseModel] = UserSettingsSchema,
        settings_schema: Type[BaseModel] = AppSettingsSchema,
        default_settings: Optional[Dict[str, Any]] = None,
        default_user_settings: Optional[Dict[str, Any]] = None,
    ):
        self.user_schema = user_schema
        self.user_request_schema = user_request_schema
        self.user_settings_schema = user_settings_schema
        self.settings_schema = settings_schema
        self._default_settings = default_settings
        self._default_user_settings = default_user_settings

    # ── Hooks ─────────────────────────────────────────────────────────────

    async def after_insert(self, ctx: RequestContext, profile: Any) -> None:
        pass

    async def before_get_profile(self, ctx: RequestContext) -> None:
        pass

    # ── Helpers ───────────────────────────────────────────────────────────

    def default_settings(self, ctx: RequestContext) -> Dict[str, Any]:
        return dict(self._default_settings or ctx.settings.default_settings)

    def default_user_settings(self, ctx: RequestContext) -> Dict[str, Any]:
        return dict(self._default_user_settings or ctx.settings.default_user_settings)

    def get_profile_record(self, ctx: RequestContext) -> Any:
        if ctx.credentials is None or ctx.credentials.profile is None:
            raise Unauthorized()
        return ctx.credentials.profile

    def user_settings(self, ctx: RequestContext, profile: Any) -> Dict[str, Any]:
        """Stored settings, or the defaults when none are stored."""
        return profile.decoded_settings() or self.default_user_settings(ctx)

    def shape_settings(self, values: Dict[str, Any], schema: Type[BaseModel]) -> Dict[str, Any]:
        return schema.model_validate(values).model_dump(mode="json", by_alias=True, exclude_none=True)

    def profile_data(self, ctx: RequestContext, profile: Any) -> Dict[str, Any]:
        return {
            "profile": profile.to_response(self.user_schema),
            "userSettings": self.shape_settings(
                self.user_settings(ctx, profile), self.user_settings_schema
            ),
        }

    def form(self, ctx: RequestContext, key: str) -> Any:
        data = (ctx.payload or {}).get("data")
        if isinstance(data, dict):
            for name in (key, to_camel(key)):
                if name in data:
                    return data[name]
        raise ValidationError(message=f"'data.{to_camel(key)}' is required", field=key)

    def validate(self, schema: Type[BaseModel], value: Any, field: str) -> Dict[str, Any]:
        try:
            return schema.model_validate(value).model_dump(exclude_unset=True)
        except PydanticValidationError as exc:
            raise ValidationError(
                message="Request data is invalid",
                field=field,
                errors=validation_errors(exc),
            )

    # ── Actions ───────────────────────────────────────────────────────────

    async def get_profile(self, ctx: RequestContext) -> Dict[str, Any]:
        profile = self.get_profile_record(ctx)

        async with log_errors(ctx, ["error", "profile", "get"]):
            if ctx.credentials.is_new_user:
                await self.after_insert(ctx, profile)
            await self.before_get_profile(ctx)

        return json_response(
            "Get profile successfully",
            self.profile_data(ctx, profile),
            settings=self.shape_settings(self.default_settings(ctx), self.settings_schema),
        )

    async def get_app_settings(self, ctx: RequestContext) -> Dict[str, Any]:
        return json_response(
            "Get settings successfully",
            {"settings": self.shape_settings(self.default_settings(ctx), self.settings_schema)},
        )

    async def update_profile(self, ctx: RequestContext) -> Dict[str, Any]:
        profile = self.get_profile_record(ctx)
        values = self.validate(self.user_request_schema, self.form(ctx, "profile"), "profile")

        async with log_errors(ctx, ["error", "profile", "update"]):
            profile.apply(values)
            profile.updated_by = ctx.user_id
            profile = await ctx.data_store.get_store("User").update_one(profile)

        return json_response(
            "Update profile successfully",
            {"profile": profile.to_response(self.user_schema)},
        )

    async def upload_avatar(self, ctx: RequestContext) -> Dict[str, Any]:
        profile = self.get_profile_record(ctx)
        upload = (ctx.payload or {}).get("file")
        if upload is None:
            raise ValidationError(message="'file' is required", field="file")

        options = UploadOptions(
            path=AVATAR_PATH,
            prefix=ctx.settings.upload_prefix or "user",
            user_id=profile.uid,
        )

        async with log_errors(ctx, ["error", "profile", "avatar"]):
            content = await upload.read()
            stored = await ctx.file_service.save_upload(
                upload.filename, content, options, content_length=upload.size
            )
            try:
                images = await ctx.image_service.resize_image(stored, ctx.settings.avatar_sizes)
            except Exception:
                await ctx.file_service.cleanup_file(stored.absolute_path)
                raise

            avatar = json.dumps(images)
            try:
                await ctx.data_store.get_store("User").update_avatar(profile.uid, avatar)
            except Exception:
                await ctx.image_service.cleanup(images)
                raise
            profile.avatar = avatar

        return json_response(
            "Upload avatar successfully",
            {"profile": profile.to_response(self.user_schema)},
        )

    async def update_settings(self, ctx: RequestContext) -> Dict[str, Any]:
        """
        Merge incoming settings onto the stored ones.

        stored {"a": 1} + incoming {"b": 2} → {"a": 1, "b": 2}; None values
        in the request are ignored rather than clearing a key.
        """
        profile = self.get_profile_record(ctx)
        incoming = self.validate(
            self.user_settings_schema, self.form(ctx, "user_settings"), "userSettings"
        )

        merged = self.user_settings(ctx, profile)
        merged.update({key: value for key, value in incoming.items() if value is not None})
        ctx.log(["debug", "profile", "settings", "update"], merged)

        async with log_errors(ctx, ["error", "profile", "settings", "update"]):
            encoded = json.dumps(merged)
            await ctx.data_store.get_store("User").update_settings(profile.uid, encoded)
            profile.settings = encoded

        return json_response(
            "Update settings successfully",
            {"userSettings": self.shape_settings(merged, self.user_settings_schema)},
        )

    async def request_verification_code(self, ctx: RequestContext) -> Dict[str, Any]:
        profile = self.get_profile_record(ctx)
        if profile.is_verified:
            error = AlreadyVerified()
            ctx.log(["info", "profile", "verification", "failed"], error.to_payload())
            raise error

        async with log_errors(
            ctx, ["error", "profile", "verification"], codes=VERIFICATION_CODES
        ):
            result = await ctx.user_manager.send_verification_code(profile)

        otp = OtpResponse.model_validate(result).model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        return json_response("Request OTP successfully", {"otp": otp})

    async def confirm_verification_code(self, ctx: RequestContext) -> Dict[str, Any]:
        profile = self.get_profile_record(ctx)
        otp = str(self.form(ctx, "otp"))

        error = None
        if profile.is_verified:
            error = AlreadyVerified()
        elif profile.is_verification_expired:
            error = VerificationExpired()
        elif not secrets.compare_digest(str(profile.verification_code or ""), otp):
            error = VerificationMismatch()
        if error is not None:
            ctx.log(["info", "profile", "verification", "failed"], error.to_payload())
            raise error

        async with log_errors(ctx, ["error", "profile", "verification", "confirm"]):
            await ctx.data_store.get_store("User").mark_verified(profile.uid)

        profile.is_verified = True
        profile.verification_code = None
        profile.verification_expires_at = None

        return json_response("Confirm OTP successfully", self.profile_data(ctx, profile))
