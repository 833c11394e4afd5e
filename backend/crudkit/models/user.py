"""
crudkit Backend — User SQLAlchemy Model
========================================

What:  ORM model for the `users` table (the authenticated caller's profile).
Who:   Loaded by the authenticator for every authenticated request and
       mutated by ProfileController (profile, settings, avatar, OTP state).

Verification state machine (derived from columns):
    Unverified      is_verified = False, verification_code IS NULL
    CodeRequested   is_verified = False, verification_code set, expires_at set
    Verified        is_verified = True (terminal)

JSON columns:
    `settings` and `avatar` are stored as JSON text; decoded_settings() and
    the response schemas decode them transparently.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crudkit.database import Base
from crudkit.models.base import RecordStatus, ResourceRecord, as_utc, new_uid, utcnow


class User(ResourceRecord, Base):
    """A registered user and their profile data."""

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uid)

    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # JSON text: {"small": "avatar/...", "medium": "...", ...}
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # JSON text of the user's application settings
    settings: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    verification_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Opaque token issued by the identity provider; looked up on each request
    access_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        Index("idx_users_access_token", "access_token"),
    )

    @property
    def is_verification_expired(self) -> bool:
        """True when no code is outstanding or its expiry has passed."""
        if self.verification_expires_at is None:
            return True
        return as_utc(self.verification_expires_at) < utcnow()

    def decoded_settings(self) -> Dict[str, Any]:
        """Stored settings as a dict; empty when absent or undecodable."""
        if not self.settings:
            return {}
        if isinstance(self.settings, dict):
            return dict(self.settings)
        try:
            value = json.loads(self.settings)
        except ValueError:
            return {}
        return value if isinstance(value, dict) else {}

    def __repr__(self) -> str:
        return f"<User(uid={self.uid}, verified={self.is_verified})>"
