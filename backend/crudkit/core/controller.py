"""
crudkit Backend — Generic Resource Controller
==============================================

What:  list / detail / create / update / delete for any resource registered
       in the DataStore.
Why:   Feature controllers only describe their resource (ResourceConfig) and
       override the hooks they care about; pagination, ownership checks,
       soft delete and response shaping live here once.
How:   Every action runs its store calls inside store_errors(), which logs
       failures under ["error", <data_key>, <action>] and wraps anything
       that is not already an AppError in StoreFailure.

Action Flow (list):
    query string ─▶ parse_query ─▶ before_filter ─▶ owner scope
        ─▶ to_query + PagingQuery ─▶ store.filter_pagination
        ─▶ to_response(response_item) ─▶ after_filter ─▶ envelope

Ownership:
    With check_owner, list is always scoped to the caller and
    detail/update/delete raise Forbidden (403, code 204) before any hook
    runs when the record belongs to someone else.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Sequence, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from crudkit.core.context import RequestContext
from crudkit.core.hooks import ControllerHooks
from crudkit.core.query import PagingQuery, QueryParams, parse_query
from crudkit.core.resource import ResourceConfig
from crudkit.core.response import json_response, paginated_response
from crudkit.core.text import camel_to_snake
from crudkit.exceptions import (
    AppError,
    Forbidden,
    InvalidConfiguration,
    StoreFailure,
    ValidationError,
)
from crudkit.models.base import RecordStatus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def log_errors(
    ctx: RequestContext,
    tags: Sequence[str],
    codes: Optional[Mapping[str, int]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> AsyncIterator[None]:
    """
    Log failures under `tags`; AppErrors propagate unchanged, anything else
    is wrapped in StoreFailure (store code kept, mapped through `codes`).
    """
    try:
        yield
    except AppError as exc:
        ctx.log(tags, exc)
        raise
    except Exception as exc:
        ctx.log(tags, exc)
        raise StoreFailure(exc, codes=codes, context=context) from exc


def validation_errors(exc: PydanticValidationError) -> list:
    """pydantic errors → JSON-safe [{field, message, type}] list."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors(include_url=False)
    ]


class ResourceController(ControllerHooks):
    """
    Base controller bound to one ResourceConfig.

    Subclasses usually override hooks (before_filter, after_filter,
    after_detail, before_update, after_update) or whole actions.

    Attributes:
        config:      Immutable resource options
        store_codes: Store error code → HTTP status used when wrapping
                     upstream failures in StoreFailure
    """

    store_codes: Mapping[str, int] = {}

    def __init__(self, config: Optional[ResourceConfig] = None):
        if config is None:
            raise InvalidConfiguration("Controller requires a resource config")
        self.config = config

    # ── Helpers ───────────────────────────────────────────────────────────

    @property
    def data_key(self) -> str:
        return self.config.data_key

    @property
    def data_key_plural(self) -> str:
        return self.config.data_key_plural

    def get_store(self, ctx: RequestContext):
        return ctx.data_store.get_store(self.config.store_name)

    def store_errors(self, ctx: RequestContext, action: str):
        return log_errors(
            ctx,
            ["error", self.data_key, action],
            codes=self.store_codes,
            context={"resource": self.config.store_name, "action": action},
        )

    def is_owner(self, ctx: RequestContext, record: Any) -> bool:
        owner = getattr(record, self.config.user_key, None)
        return owner is not None and owner == ctx.user_id

    async def get_model(self, ctx: RequestContext, key: str = "uid") -> Any:
        """Load the record named by a path parameter, enforcing ownership."""
        pk = ctx.path_params.get(key)
        if not pk:
            raise ValidationError(message=f"'{key}' is required", field=key)

        record = await self.get_store(ctx).get_one_by_pk(pk)
        if self.config.check_owner and not self.is_owner(ctx, record):
            raise Forbidden(context={"resource": self.config.store_name, "uid": pk})
        return record

    def validate_data(
        self,
        ctx: RequestContext,
        schema: Optional[Type[BaseModel]],
    ) -> Dict[str, Any]:
        """
        Validate payload["data"] and return the provided values (snake_case).

        Without a schema the raw mapping is returned; unknown keys are
        dropped later when values are applied to the record.
        """
        payload = ctx.payload or {}
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ValidationError(message="'data' must be an object", field="data")
        if schema is None:
            return {camel_to_snake(key): value for key, value in data.items()}
        try:
            model = schema.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(
                message="Request data is invalid",
                field="data",
                errors=validation_errors(exc),
            )
        return model.model_dump(exclude_unset=True)

    def shape(self, record: Any, schema: Optional[Type[BaseModel]] = None) -> Dict[str, Any]:
        return record.to_response(schema or self.config.schemas.response)

    # ── Hooks ─────────────────────────────────────────────────────────────

    async def before_filter(self, ctx: RequestContext, params: QueryParams) -> None:
        """
        Default status handling: inject the first allowed status when the
        filter has none, reject statuses outside the allow-list.
        """
        allowed = self.config.allowed_statuses
        status = params.filter.get("status")
        if status is None:
            params.filter["status"] = allowed[0]
            return

        requested = status if isinstance(status, list) else [status]
        rejected = [value for value in requested if value not in allowed]
        if rejected:
            raise ValidationError(
                message=f"Status filter must be one of: {', '.join(allowed)}",
                field="filter[status]",
                context={"rejected": rejected},
            )

    # ── Actions ───────────────────────────────────────────────────────────

    async def list(self, ctx: RequestContext) -> Dict[str, Any]:
        params = parse_query(ctx.query)
        if params.page_size and params.page_size > ctx.settings.max_page_size:
            raise ValidationError(
                message=f"'pageSize' must not exceed {ctx.settings.max_page_size}",
                field="pageSize",
            )

        async with self.store_errors(ctx, "list"):
            await self.before_filter(ctx, params)

            if self.config.check_owner:
                user_key = self.config.user_key
                for key in [k for k in params.filter if camel_to_snake(k) == user_key]:
                    del params.filter[key]
                params.filter[user_key] = ctx.require_user_id()

            store = self.get_store(ctx)
            query = store.record_class.to_query(params.filter)
            paging = PagingQuery.from_params(params, self.config.page_size)
            result = await store.filter_pagination(query, paging)

            items = [self.shape(record, self.config.schemas.item) for record in result.data]
            await self.after_filter(ctx, items, result)

        return paginated_response(
            result,
            f"Get list {self.data_key_plural} successfully",
            {self.data_key_plural: items},
        )

    async def detail(self, ctx: RequestContext) -> Dict[str, Any]:
        async with self.store_errors(ctx, "detail"):
            record = await self.get_model(ctx, "uid")
            record = await self.after_detail(ctx, record) or record

        return json_response(
            f"Get {self.data_key} successfully",
            {self.data_key: self.shape(record)},
        )

    async def create(self, ctx: RequestContext) -> Dict[str, Any]:
        values = self.validate_data(ctx, self.config.schemas.create_request)
        if self.config.check_owner:
            values[self.config.user_key] = ctx.require_user_id()

        async with self.store_errors(ctx, "create"):
            store = self.get_store(ctx)
            record = await store.insert_one(store.create_model(values))

        return json_response(
            f"Create {self.data_key} successfully",
            {self.data_key: self.shape(record)},
        )

    async def update(self, ctx: RequestContext) -> Dict[str, Any]:
        async with self.store_errors(ctx, "update"):
            existing = await self.get_model(ctx, "uid")
            incoming = self.validate_data(ctx, self.config.schemas.update_request)
            # Ownership field is never reassigned through an update
            incoming.pop(self.config.user_key, None)

            await self.before_update(ctx, existing, incoming)
            existing.apply(incoming)
            record = await self.get_store(ctx).update_one(existing)
            record = await self.after_update(ctx, record) or record

        return json_response(
            f"Update {self.data_key} successfully",
            {self.data_key: self.shape(record)},
        )

    async def delete(self, ctx: RequestContext) -> Dict[str, Any]:
        """Soft delete: the record's status becomes "deleted"; rows are never removed."""
        async with self.store_errors(ctx, "delete"):
            record = await self.get_model(ctx, "id")
            record.status = RecordStatus.DELETED.value
            record = await self.get_store(ctx).update_one(record)

        return json_response(
            f"Delete {self.data_key} successfully",
            {self.data_key: self.shape(record)},
        )
