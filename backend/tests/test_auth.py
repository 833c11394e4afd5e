"""
crudkit Backend — Authentication Unit Tests
============================================

What:  Tests for AuthManager registration and the two authenticator types.
"""

from unittest.mock import AsyncMock

import pytest

from crudkit.auth import (
    AuthManager,
    BasicTokenAuthenticator,
    OAuthBearerAuthenticator,
)
from crudkit.config import Settings
from crudkit.exceptions import InvalidConfiguration, Unauthorized
from crudkit.models import User
from crudkit.store.base import DataStore


@pytest.fixture
def user_store(mock_store):
    store = mock_store(User)
    store.get_one_by_token = AsyncMock(return_value=None)
    return store


class TestAuthManager:

    def test_from_settings_registers_default_scheme(self):
        manager = AuthManager.from_settings(Settings(auth_name="bearer", auth_type="basic_token"))

        assert manager.names == ["bearer"]
        assert isinstance(manager.get("bearer"), BasicTokenAuthenticator)

    def test_duplicate_name_not_registered(self):
        manager = AuthManager()
        assert manager.add_authenticator("bearer", OAuthBearerAuthenticator()) is True
        assert manager.add_authenticator("bearer", BasicTokenAuthenticator()) is False
        assert isinstance(manager.get("bearer"), OAuthBearerAuthenticator)

    def test_unknown_scheme(self):
        with pytest.raises(InvalidConfiguration):
            AuthManager().get("missing")

    @pytest.mark.asyncio
    async def test_authenticate_sets_scheme(self, user_store, make_user):
        user = make_user()
        user_store.get_one_by_token.return_value = user
        manager = AuthManager()
        manager.add_authenticator("device", OAuthBearerAuthenticator())

        credentials = await manager.authenticate("device", user.access_token, DataStore({"User": user_store}))

        assert credentials.user_id == user.uid
        assert credentials.scheme == "device"


class TestAuthenticators:

    @pytest.mark.asyncio
    async def test_oauth_bearer_rejects_unknown_token(self, user_store):
        with pytest.raises(Unauthorized):
            await OAuthBearerAuthenticator().authenticate("nope", DataStore({"User": user_store}))

    @pytest.mark.asyncio
    async def test_oauth_bearer_rejects_deleted_user(self, user_store, make_user):
        user_store.get_one_by_token.return_value = make_user(status="deleted")

        with pytest.raises(Unauthorized):
            await OAuthBearerAuthenticator().authenticate("t", DataStore({"User": user_store}))

    @pytest.mark.asyncio
    async def test_basic_token_registers_new_user(self, user_store):
        credentials = await BasicTokenAuthenticator().authenticate(
            "device-token", DataStore({"User": user_store})
        )

        inserted = user_store.insert_one.call_args.args[0]
        assert inserted.access_token == "device-token"
        assert credentials.is_new_user is True
        assert credentials.profile is inserted

    @pytest.mark.asyncio
    async def test_basic_token_known_user(self, user_store, make_user):
        user = make_user()
        user_store.get_one_by_token.return_value = user

        credentials = await BasicTokenAuthenticator().authenticate(
            user.access_token, DataStore({"User": user_store})
        )

        assert credentials.is_new_user is False
        user_store.insert_one.assert_not_called()
