"""
crudkit Backend — Authentication
=================================

What:  Resolves the caller behind `Authorization: Bearer <token>` into
       Credentials (user id + profile record).
How:   An AuthManager holding named authenticators is constructed once in
       the lifespan and stored on app.state. Routes depend on
       require_auth(name), which looks the manager up per request.

Authenticator types (settings.auth_type):
    oauth_bearer  Token issued by an identity provider; unknown tokens are
                  rejected with 401.
    basic_token   Device/installation token; an unknown token registers a
                  new user on first use (Credentials.is_new_user = True).
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from crudkit.config import Settings
from crudkit.exceptions import InvalidConfiguration, Unauthorized
from crudkit.models.base import RecordStatus

logger = logging.getLogger(__name__)

BEARER_SECURITY = HTTPBearer(auto_error=False)


@dataclass
class Credentials:
    """Authenticated caller, handed to controllers through RequestContext."""

    user_id: str
    profile: Any
    is_new_user: bool = False
    scheme: str = "bearer"


class AuthorizationHeaders(BaseModel):
    """Headers every authenticated route requires."""

    authorization: str = Field(pattern=r"^\S+ \S+$", description="Bearer <token>")

    model_config = ConfigDict(extra="allow")


class Authenticator(abc.ABC):
    """Turns a raw token into Credentials or raises Unauthorized."""

    type_name: str = ""
    header_model: Type[BaseModel] = AuthorizationHeaders

    @abc.abstractmethod
    async def authenticate(self, token: str, data_store: Any) -> Credentials:
        ...


class OAuthBearerAuthenticator(Authenticator):
    type_name = "oauth_bearer"

    async def authenticate(self, token: str, data_store: Any) -> Credentials:
        user = await data_store.get_store("User").get_one_by_token(token)
        if user is None or user.status == RecordStatus.DELETED.value:
            raise Unauthorized(context={"reason": "unknown token"})
        return Credentials(user_id=user.uid, profile=user)


class BasicTokenAuthenticator(Authenticator):
    type_name = "basic_token"

    async def authenticate(self, token: str, data_store: Any) -> Credentials:
        store = data_store.get_store("User")
        user = await store.get_one_by_token(token)
        if user is not None:
            if user.status == RecordStatus.DELETED.value:
                raise Unauthorized(context={"reason": "deleted user"})
            return Credentials(user_id=user.uid, profile=user)

        user = await store.insert_one(store.create_model({"access_token": token}))
        logger.info("Registered new user %s from basic token", user.uid)
        return Credentials(user_id=user.uid, profile=user, is_new_user=True)


AUTHENTICATOR_TYPES: Dict[str, Type[Authenticator]] = {
    OAuthBearerAuthenticator.type_name: OAuthBearerAuthenticator,
    BasicTokenAuthenticator.type_name: BasicTokenAuthenticator,
}


class AuthManager:
    """
    Registry of named authenticators.

    Usage:
        manager = AuthManager.from_settings(settings)
        credentials = await manager.authenticate("bearer", token, data_store)
    """

    def __init__(self):
        self._authenticators: Dict[str, Authenticator] = {}

    @classmethod
    def from_settings(cls, config: Settings) -> "AuthManager":
        manager = cls()
        try:
            authenticator_class = AUTHENTICATOR_TYPES[config.auth_type]
        except KeyError:
            raise InvalidConfiguration(f"Unknown auth type '{config.auth_type}'")
        manager.add_authenticator(config.auth_name, authenticator_class())
        return manager

    def add_authenticator(self, name: str, authenticator: Authenticator) -> bool:
        """Register under `name`. Returns False if the name is taken."""
        if name in self._authenticators:
            return False
        self._authenticators[name] = authenticator
        logger.info("Auth scheme registered: %s (%s)", name, authenticator.type_name)
        return True

    def get(self, name: str) -> Authenticator:
        try:
            return self._authenticators[name]
        except KeyError:
            raise InvalidConfiguration(f"Auth scheme '{name}' is not registered")

    @property
    def names(self):
        return list(self._authenticators)

    async def authenticate(self, name: str, token: str, data_store: Any) -> Credentials:
        credentials = await self.get(name).authenticate(token, data_store)
        credentials.scheme = name
        return credentials


def require_auth(name: str) -> Callable:
    """FastAPI dependency resolving Credentials with the named scheme."""

    async def dependency(
        request: Request,
        bearer: Optional[HTTPAuthorizationCredentials] = Depends(BEARER_SECURITY),
    ) -> Credentials:
        if bearer is None or not bearer.credentials:
            raise Unauthorized()
        manager: AuthManager = request.app.state.auth_manager
        return await manager.authenticate(name, bearer.credentials, request.app.state.data_store)

    dependency.__name__ = f"require_{name}_auth"
    return dependency
