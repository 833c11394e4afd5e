"""
crudkit Backend — Request Context
==================================

What:  Everything a controller needs for one request, gathered in one object.
Why:   Controllers stay independent of FastAPI's Request: tests build a
       RequestContext directly, routes build it with from_request().
How:   Process-wide dependencies (settings, data store, user manager, file
       and image services) are constructed once in the lifespan and kept on
       app.state; from_request() copies references to them next to the
       per-request values (credentials, path params, query, payload).
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Sequence

from crudkit.config import Settings, settings as default_settings
from crudkit.exceptions import Unauthorized

if TYPE_CHECKING:
    from starlette.requests import Request

    from crudkit.auth import Credentials
    from crudkit.services.file_service import FileService
    from crudkit.services.image_service import ImageService
    from crudkit.services.user_manager import UserManager
    from crudkit.store.base import DataStore

logger = logging.getLogger("crudkit.request")

# First tag of a log call → level
_TAG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "debug": logging.DEBUG,
    "info": logging.INFO,
}


@dataclass
class RequestContext:
    data_store: "DataStore"
    settings: Settings = field(default_factory=lambda: default_settings)
    credentials: Optional["Credentials"] = None
    path_params: Dict[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    payload: Optional[Dict[str, Any]] = None
    user_manager: Optional["UserManager"] = None
    file_service: Optional["FileService"] = None
    image_service: Optional["ImageService"] = None
    request_id: str = ""

    @property
    def user_id(self) -> Optional[str]:
        return self.credentials.user_id if self.credentials else None

    def require_user_id(self) -> str:
        """Caller's uid, or Unauthorized for anonymous requests."""
        if not self.user_id:
            raise Unauthorized()
        return self.user_id

    def log(self, tags: Sequence[str], data: Any) -> None:
        """
        Tagged request log, e.g. ctx.log(["error", "notification", "list"], exc).

        The first tag picks the level; exceptions logged at error level keep
        their traceback.
        """
        level = _TAG_LEVELS.get(tags[0], logging.INFO) if tags else logging.INFO
        exc_info = data if isinstance(data, BaseException) and level >= logging.ERROR else None
        logger.log(
            level,
            "[%s] %s [%s]",
            ",".join(tags),
            data,
            self.request_id,
            exc_info=exc_info,
            extra={"tags": list(tags), "request_id": self.request_id},
        )

    @classmethod
    def from_request(
        cls,
        request: "Request",
        payload: Optional[Dict[str, Any]] = None,
        credentials: Optional["Credentials"] = None,
    ) -> "RequestContext":
        state = request.app.state
        return cls(
            data_store=state.data_store,
            settings=getattr(state, "settings", default_settings),
            credentials=credentials,
            path_params=dict(request.path_params),
            query=request.query_params,
            payload=payload,
            user_manager=getattr(state, "user_manager", None),
            file_service=getattr(state, "file_service", None),
            image_service=getattr(state, "image_service", None),
            request_id=getattr(request.state, "request_id", ""),
        )
