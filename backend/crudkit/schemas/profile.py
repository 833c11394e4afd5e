"""
crudkit Backend — Profile & Settings Schemas
=============================================

What:  API contracts for the profile feature (profile, user settings,
       application settings, OTP).
Why:   Stored JSON text columns (avatar, settings) are decoded here so the
       API always returns objects, never serialized strings.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field, ValidationInfo, field_validator

from crudkit.schemas.common import CamelModel, context_settings


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


class ProfileResponse(CamelModel):
    """Public view of a user profile. Tokens and OTP codes are never exposed."""

    uid: str
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    avatar: Optional[Dict[str, str]] = Field(default=None, description="Avatar URL per size")
    is_verified: bool = False
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("avatar", mode="before")
    @classmethod
    def decode_avatar(cls, v: Any) -> Any:
        return _decode_json(v)


class ProfileRequest(CamelModel):
    """Editable profile fields. Unknown keys are stripped."""

    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ProfileUpdateData(CamelModel):
    profile: ProfileRequest


class UserSettingsSchema(CamelModel):
    """
    Per-user application settings.

    Known keys are typed; any other key is accepted and stored as-is so
    clients can add preferences without a schema change.
    """

    language: Optional[str] = None
    notification: Optional[bool] = None

    model_config = ConfigDict(extra="allow")


class UserSettingsUpdateData(CamelModel):
    user_settings: UserSettingsSchema


class AppSettingsSchema(CamelModel):
    """Application-wide settings (read-only for clients)."""

    language: Optional[str] = None
    currency: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class OtpResponse(CamelModel):
    """Reference to an issued verification code."""

    expires_at: datetime
    length: int
    code: Optional[str] = Field(
        default=None,
        description="Only present when the code sender echoes codes (development)",
    )


class OtpConfirmData(CamelModel):
    otp: str = Field(
        min_length=1,
        description="Verification code received by the user (VERIFICATION_LENGTH characters)",
    )

    @field_validator("otp")
    @classmethod
    def has_configured_length(cls, value: str, info: ValidationInfo) -> str:
        config = context_settings(info)
        if config is not None and len(value) != config.verification_length:
            raise ValueError(f"Verification code must have {config.verification_length} characters")
        return value
