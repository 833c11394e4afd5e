"""Success envelope builders: {"meta": {"message": ...}, "data": {...}}."""

from typing import Any, Dict, Optional

from crudkit.core.query import PaginationResult


def json_response(message: str, data: Optional[Dict[str, Any]] = None, **meta: Any) -> Dict[str, Any]:
    """Single-record or message-only success body. Extra kwargs land in meta."""
    body: Dict[str, Any] = {"meta": {"message": message, **meta}}
    if data is not None:
        body["data"] = data
    return body


def paginated_response(
    result: PaginationResult,
    message: str,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    """List success body with meta.pagination taken from the store result."""
    return {
        "meta": {"message": message, "pagination": result.meta()},
        "data": data,
    }
