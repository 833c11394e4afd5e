"""
crudkit Backend — ResourceController Unit Tests
================================================

What:  Tests for the generic list/detail/create/update/delete actions.
Why:   Every resource inherits this behaviour: status filtering, pagination
       limits, ownership, soft delete and store error wrapping.
How:   Stores are AsyncMock doubles (see conftest.mock_store); records are
       real, unsaved Notification instances.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from crudkit.config import settings
from crudkit.core.controller import ResourceController
from crudkit.core.query import PaginationResult
from crudkit.core.resource import ResourceConfig, ResourceSchemas
from crudkit.exceptions import (
    Forbidden,
    InvalidConfiguration,
    NotFoundError,
    StoreFailure,
    UpstreamError,
    ValidationError,
)
from crudkit.models import Notification
from crudkit.schemas.notification import NotificationResponse, notification_schemas


def page_of(records, total=None, page=1, page_size=20):
    return PaginationResult(
        data=list(records),
        total=len(records) if total is None else total,
        page=page,
        page_size=page_size,
    )


class TestResourceConfig:

    def test_data_keys_derived_from_store_name(self):
        config = ResourceConfig(store_name="UserProfile", schemas=notification_schemas)
        assert config.data_key == "userProfile"
        assert config.data_key_plural == "userProfiles"

    def test_explicit_data_keys_kept(self):
        config = ResourceConfig(
            store_name="Person",
            schemas=notification_schemas,
            data_key="person",
            data_key_plural="people",
        )
        assert config.data_key_plural == "people"

    def test_empty_store_name_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ResourceConfig(store_name="", schemas=notification_schemas)

    def test_item_schema_defaults_to_response(self):
        assert ResourceSchemas(response=NotificationResponse).item is NotificationResponse

    def test_controller_requires_config(self):
        with pytest.raises(InvalidConfiguration):
            ResourceController(None)


class TestResourceControllerList:

    @pytest.fixture(autouse=True)
    def setup(self, mock_store, make_ctx, make_user, make_notification):
        self.store = mock_store(Notification)
        self.user = make_user()
        self.make_ctx = lambda **kw: make_ctx({"Notification": self.store}, user=self.user, **kw)
        self.make_notification = make_notification
        self.controller = ResourceController(
            ResourceConfig(store_name="Notification", schemas=notification_schemas)
        )

    @pytest.mark.asyncio
    async def test_list_injects_first_allowed_status(self):
        self.store.filter_pagination.return_value = page_of([])

        await self.controller.list(self.make_ctx(query={}))

        query, paging = self.store.filter_pagination.call_args.args
        assert query == {"status": "active"}
        assert (paging.page, paging.page_size) == (1, 20)

    @pytest.mark.asyncio
    async def test_list_rejects_status_outside_allow_list(self):
        with pytest.raises(ValidationError):
            await self.controller.list(self.make_ctx(query={"filter[status]": "deleted"}))
        self.store.filter_pagination.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_rejects_page_size_above_maximum(self):
        ctx = self.make_ctx(query={"pageSize": str(settings.max_page_size + 1)})
        with pytest.raises(ValidationError, match="pageSize"):
            await self.controller.list(ctx)

    @pytest.mark.asyncio
    async def test_list_drops_unknown_filter_keys(self):
        self.store.filter_pagination.return_value = page_of([])

        await self.controller.list(
            self.make_ctx(query={"filter[type]": "system", "filter[password]": "x"})
        )

        query, _ = self.store.filter_pagination.call_args.args
        assert query == {"type": "system", "status": "active"}

    @pytest.mark.asyncio
    async def test_list_envelope(self):
        notification = self.make_notification(self.user.uid, title="Hi")
        self.store.filter_pagination.return_value = page_of([notification], total=41, page=2)

        body = await self.controller.list(self.make_ctx(query={"page": "2"}))

        assert body["meta"]["message"] == "Get list notifications successfully"
        assert body["meta"]["pagination"] == {"page": 2, "pageSize": 20, "total": 41, "totalPages": 3}
        [item] = body["data"]["notifications"]
        assert item["uid"] == notification.uid
        assert item["isRead"] is False
        # list items use the compact schema
        assert "userId" not in item

    @pytest.mark.asyncio
    async def test_list_runs_after_filter_on_shaped_items(self):
        self.store.filter_pagination.return_value = page_of([self.make_notification(self.user.uid)])
        self.controller.after_filter = AsyncMock()

        await self.controller.list(self.make_ctx(query={}))

        _, items, result = self.controller.after_filter.call_args.args
        assert items[0]["title"] == "Welcome"
        assert result.total == 1

    @pytest.mark.asyncio
    async def test_list_scopes_to_caller_when_owner_checked(self):
        controller = ResourceController(
            ResourceConfig(store_name="Notification", schemas=notification_schemas, check_owner=True)
        )
        self.store.filter_pagination.return_value = page_of([])

        await controller.list(self.make_ctx(query={"filter[userId]": "someone-else"}))

        query, _ = self.store.filter_pagination.call_args.args
        assert query["user_id"] == self.user.uid

    @pytest.mark.asyncio
    async def test_list_wraps_store_failures(self):
        self.store.filter_pagination.side_effect = RuntimeError("connection lost")

        with pytest.raises(StoreFailure) as exc_info:
            await self.controller.list(self.make_ctx(query={}))

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "1000"
        assert isinstance(exc_info.value.original, RuntimeError)

    @pytest.mark.asyncio
    async def test_driver_errors_are_opaque(self):
        self.store.get_one_by_pk.side_effect = OperationalError(
            "SELECT * FROM users WHERE access_token = ?", ("tok-secret",), Exception("db gone")
        )

        with pytest.raises(StoreFailure) as exc_info:
            await self.controller.detail(self.make_ctx(path_params={"uid": "n-1"}))

        payload = exc_info.value.to_payload()
        assert exc_info.value.status_code == 500
        assert payload["code"] == "1000"
        assert "SELECT" not in payload["message"]
        assert "tok-secret" not in str(payload)
        assert isinstance(exc_info.value.original, OperationalError)


class TestResourceControllerRecord:

    @pytest.fixture(autouse=True)
    def setup(self, mock_store, make_ctx, make_user, make_notification):
        self.store = mock_store(Notification)
        self.user = make_user()
        self.other = make_user()
        self.own = make_notification(self.user.uid)
        self.foreign = make_notification(self.other.uid)
        self.make_ctx = lambda **kw: make_ctx({"Notification": self.store}, user=self.user, **kw)
        self.controller = ResourceController(
            ResourceConfig(store_name="Notification", schemas=notification_schemas, check_owner=True)
        )

    # ── detail ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_detail(self):
        self.store.get_one_by_pk.return_value = self.own

        body = await self.controller.detail(self.make_ctx(path_params={"uid": self.own.uid}))

        self.store.get_one_by_pk.assert_awaited_once_with(self.own.uid)
        assert body["meta"]["message"] == "Get notification successfully"
        assert body["data"]["notification"]["userId"] == self.user.uid

    @pytest.mark.asyncio
    async def test_after_detail_can_replace_record(self, make_notification):
        replacement = make_notification(self.user.uid, title="Rewritten")
        self.store.get_one_by_pk.return_value = self.own
        self.controller.after_detail = AsyncMock(return_value=replacement)

        body = await self.controller.detail(self.make_ctx(path_params={"uid": self.own.uid}))

        assert body["data"]["notification"]["title"] == "Rewritten"
        assert body["data"]["notification"]["uid"] == replacement.uid

    @pytest.mark.asyncio
    async def test_detail_of_foreign_record_is_forbidden_before_hooks(self):
        self.store.get_one_by_pk.return_value = self.foreign
        self.controller.after_detail = AsyncMock()

        with pytest.raises(Forbidden) as exc_info:
            await self.controller.detail(self.make_ctx(path_params={"uid": self.foreign.uid}))

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "204"
        self.controller.after_detail.assert_not_called()

    @pytest.mark.asyncio
    async def test_detail_not_found_propagates(self):
        self.store.get_one_by_pk.side_effect = NotFoundError(resource="Notification", resource_id="x")

        with pytest.raises(NotFoundError):
            await self.controller.detail(self.make_ctx(path_params={"uid": "x"}))

    @pytest.mark.asyncio
    async def test_detail_requires_uid(self):
        with pytest.raises(ValidationError):
            await self.controller.detail(self.make_ctx(path_params={}))

    # ── create ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_create_stamps_owner(self):
        def persist(record):
            # column defaults a flush would fill in
            record.uid, record.is_read, record.status = "n-1", False, "active"
            return record

        self.store.insert_one.side_effect = persist
        ctx = self.make_ctx(payload={"data": {"type": "system", "title": "New", "userId": "spoofed"}})

        body = await self.controller.create(ctx)

        record = self.store.insert_one.call_args.args[0]
        assert record.user_id == self.user.uid
        assert record.title == "New"
        assert body["meta"]["message"] == "Create notification successfully"

    @pytest.mark.asyncio
    async def test_create_requires_data_object(self):
        with pytest.raises(ValidationError):
            await self.controller.create(self.make_ctx(payload={"data": "nope"}))

    # ── update ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_update_applies_values_and_runs_hooks(self):
        self.store.get_one_by_pk.return_value = self.own
        self.controller.before_update = AsyncMock()
        self.controller.after_update = AsyncMock(return_value=None)
        ctx = self.make_ctx(
            path_params={"uid": self.own.uid},
            payload={"data": {"title": "Changed", "isRead": True}},
        )

        body = await self.controller.update(ctx)

        _, existing, incoming = self.controller.before_update.call_args.args
        assert existing is self.own
        assert incoming == {"title": "Changed", "is_read": True}
        self.controller.after_update.assert_awaited_once()
        assert self.own.title == "Changed"
        assert body["data"]["notification"]["isRead"] is True
        assert body["meta"]["message"] == "Update notification successfully"

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_data(self):
        self.store.get_one_by_pk.return_value = self.own
        ctx = self.make_ctx(
            path_params={"uid": self.own.uid},
            payload={"data": {"title": "x" * 300}},
        )

        with pytest.raises(ValidationError) as exc_info:
            await self.controller.update(ctx)

        assert exc_info.value.errors[0]["field"] == "title"
        self.store.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_of_foreign_record_is_forbidden(self):
        self.store.get_one_by_pk.return_value = self.foreign
        ctx = self.make_ctx(path_params={"uid": self.foreign.uid}, payload={"data": {"title": "x"}})

        with pytest.raises(Forbidden):
            await self.controller.update(ctx)
        self.store.update_one.assert_not_called()

    # ── delete ────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_delete_is_soft(self):
        self.store.get_one_by_pk.return_value = self.own

        body = await self.controller.delete(self.make_ctx(path_params={"id": self.own.uid}))

        saved = self.store.update_one.call_args.args[0]
        assert saved.status == "deleted"
        assert body["meta"]["message"] == "Delete notification successfully"

    @pytest.mark.asyncio
    async def test_delete_maps_upstream_codes(self):
        class Controller(ResourceController):
            store_codes = {"409": 409}

        controller = Controller(self.controller.config)
        self.store.get_one_by_pk.return_value = self.own
        self.store.update_one.side_effect = UpstreamError("Record is locked", code="409")

        with pytest.raises(StoreFailure) as exc_info:
            await controller.delete(self.make_ctx(path_params={"id": self.own.uid}))

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "409"
        assert exc_info.value.message == "Record is locked"
