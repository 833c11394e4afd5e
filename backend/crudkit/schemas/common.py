"""
crudkit Backend — Shared Pydantic Schemas
==========================================

What:  Envelope, pagination, error and parameter models shared by every
       resource, plus generators that wrap a resource schema in the
       standard success envelope.
Why:   Every success body has the same outer shape:
           {"meta": {"message": "...", ...}, "data": {...}}
       and list bodies add meta.pagination. Generating the wrappers keeps
       OpenAPI docs exact for each resource without hand-writing them.
How:   pydantic.create_model() builds the per-resource wrappers at route
       construction time.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, create_model, field_validator
from pydantic.alias_generators import to_camel

from crudkit.config import Settings


class CamelModel(BaseModel):
    """Base for API models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def context_settings(info: ValidationInfo) -> Optional[Settings]:
    """
    The application's Settings, passed by the route layer as validation
    context. Bounds that depend on configuration are only checked when it
    is present, so they always follow the running app's settings.
    """
    return (info.context or {}).get("settings")


# ══════════════════════════════════════════════════════════════════════════
# Envelope Models
# ══════════════════════════════════════════════════════════════════════════


class MetaSchema(CamelModel):
    message: str = Field(description="Human-readable result message")

    model_config = ConfigDict(extra="allow")


class PaginationMeta(CamelModel):
    page: int = Field(description="Current page (1-based)")
    page_size: int = Field(description="Maximum items per page")
    total: int = Field(description="Total number of matching items")
    total_pages: int = Field(description="Number of pages for this page size")


class PaginatedMetaSchema(MetaSchema):
    pagination: PaginationMeta


class ErrorResponse(CamelModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "code": "204",
            "message": "Forbidden",
            "uiMessage": "You do not have permission to access this item",
            "requestId": "550e8400"
        }
    """

    code: str = Field(description="Domain error code")
    message: str = Field(description="Developer-facing error description")
    ui_message: str = Field(description="Text safe to show to end users")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
    errors: Optional[List[Dict[str, Any]]] = Field(default=None, description="Field errors")


ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"description": "Bad request", "model": ErrorResponse},
    403: {"description": "Forbidden", "model": ErrorResponse},
    404: {"description": "Not found", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
}


def basic_response(
    name: str,
    fields: Optional[Dict[str, Type[Any]]] = None,
    meta: Type[BaseModel] = MetaSchema,
) -> Type[BaseModel]:
    """
    Wrap resource schemas in the success envelope.

    basic_response("NotificationDetail", {"notification": NotificationResponse})
    documents {"meta": {...}, "data": {"notification": {...}}}; without fields
    only meta is documented.
    """
    if not fields:
        return create_model(f"{name}Response", meta=(meta, ...))

    data_model = create_model(
        f"{name}ResponseData",
        **{key: (Optional[schema], None) for key, schema in fields.items()},
    )
    return create_model(f"{name}Response", meta=(meta, ...), data=(data_model, ...))


def paginate(name: str, fields: Dict[str, Type[Any]]) -> Type[BaseModel]:
    """Envelope for list endpoints: basic_response with pagination meta."""
    return basic_response(name, fields, meta=PaginatedMetaSchema)


def data_payload(name: str, schema: Type[BaseModel]) -> Type[BaseModel]:
    """Request body wrapper requiring the `data` key: {"data": {...}}."""
    return create_model(f"{name}Payload", data=(schema, ...))


# ══════════════════════════════════════════════════════════════════════════
# Parameter Models
# ══════════════════════════════════════════════════════════════════════════


class SimplePaginationQuery(CamelModel):
    """
    Query parameters accepted by list endpoints.

    filter[<key>] parameters are passed through as extra fields and parsed
    by crudkit.core.query.parse_query().
    """

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    page_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Items per page (at most MAX_PAGE_SIZE)",
    )
    sort: Optional[str] = Field(
        default=None,
        description="Comma-separated fields; prefix with '-' for descending",
    )

    @field_validator("page_size")
    @classmethod
    def within_max_page_size(cls, value: Optional[int], info: ValidationInfo) -> Optional[int]:
        config = context_settings(info)
        if value is not None and config is not None and value > config.max_page_size:
            raise ValueError(f"Input should be less than or equal to {config.max_page_size}")
        return value

    model_config = ConfigDict(extra="allow")


class UidParams(BaseModel):
    uid: str = Field(min_length=1, description="Primary key")


class IdParams(BaseModel):
    id: str = Field(min_length=1, description="Primary key")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
