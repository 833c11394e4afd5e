"""
crudkit Backend — User Manager
===============================

What:  Issues one-time verification codes (OTP) and hands them to a sender.
Who:   ProfileController.request_verification_code.

Failure codes (raised as UpstreamError, mapped to HTTP 400 by the controller):
    307  code could not be generated or persisted
    308  code could not be delivered

Delivery:
    CodeSender is the seam for SMS/e-mail providers. LoggingCodeSender only
    logs the delivery; it is what the application wires by default.
"""

import abc
import logging
import secrets
import string
from datetime import timedelta
from typing import Any, Dict, Optional

from crudkit.config import Settings, settings as default_settings
from crudkit.exceptions import UpstreamError
from crudkit.models.base import utcnow

logger = logging.getLogger(__name__)


class CodeSender(abc.ABC):
    """Delivers a verification code to the user."""

    @abc.abstractmethod
    async def send(self, user: Any, code: str) -> None:
        ...


class LoggingCodeSender(CodeSender):
    async def send(self, user: Any, code: str) -> None:
        destination = user.phone_number or user.email or user.uid
        logger.info("Verification code issued for user %s via %s", user.uid, destination)


class UserManager:
    """Constructed once in the lifespan; stateless between requests."""

    def __init__(
        self,
        data_store: Any,
        config: Optional[Settings] = None,
        sender: Optional[CodeSender] = None,
    ):
        self.data_store = data_store
        self.config = config or default_settings
        self.sender = sender or LoggingCodeSender()

    def generate_code(self) -> str:
        return "".join(secrets.choice(string.digits) for _ in range(self.config.verification_length))

    async def send_verification_code(self, user: Any) -> Dict[str, Any]:
        """
        Issue a fresh code for `user`, replacing any outstanding one.

        Returns:
            {"expiresAt": ..., "length": n} (+ "code" when echo is enabled)
        """
        code = self.generate_code()
        expires_at = utcnow() + timedelta(seconds=self.config.verification_ttl_seconds)

        try:
            await self.data_store.get_store("User").update_verification(user.uid, code, expires_at)
        except Exception as e:
            logger.error("Failed to persist verification code for %s: %s", user.uid, e)
            raise UpstreamError("Verification code could not be generated", code="307") from e

        try:
            await self.sender.send(user, code)
        except Exception as e:
            logger.error("Failed to deliver verification code to %s: %s", user.uid, e)
            raise UpstreamError("Verification code could not be sent", code="308") from e

        user.verification_code = code
        user.verification_expires_at = expires_at

        result: Dict[str, Any] = {
            "expiresAt": expires_at.isoformat(),
            "length": len(code),
        }
        if self.config.echo_verification_code:
            result["code"] = code
        return result
