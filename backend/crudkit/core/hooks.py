"""Lifecycle hooks run by ResourceController. Every hook is awaited; defaults do nothing."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from crudkit.core.context import RequestContext
    from crudkit.core.query import PaginationResult, QueryParams


class ControllerHooks:
    """
    Override in a controller subclass to customize the generic actions.

    Hooks may mutate their arguments (the query filter, the shaped list
    items, the incoming update values) and may raise an AppError to abort
    the request. after_detail and after_update may also return a record,
    which replaces the one being shaped; returning None keeps it.
    """

    async def before_filter(self, ctx: "RequestContext", params: "QueryParams") -> None:
        pass

    async def after_filter(
        self,
        ctx: "RequestContext",
        items: List[Dict[str, Any]],
        result: "PaginationResult",
    ) -> None:
        pass

    async def after_detail(self, ctx: "RequestContext", record: Any) -> Optional[Any]:
        return None

    async def before_update(
        self,
        ctx: "RequestContext",
        existing: Any,
        incoming: Dict[str, Any],
    ) -> None:
        pass

    async def after_update(self, ctx: "RequestContext", record: Any) -> Optional[Any]:
        return None
