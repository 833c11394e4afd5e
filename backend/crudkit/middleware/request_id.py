"""
crudkit Backend — Request ID Middleware
========================================

What:  Tags each request with a short correlation ID.
How:   Reuses a well-formed client X-Request-ID or generates one, stores it in
       a ContextVar (loggers, exception handlers) and on request.state
       (RequestContext), and echoes it in the response header.

The ID is also returned as `requestId` in every error body, so a client
report can be matched to the server log lines of that request.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Client IDs end up in logs; accept only short token-like values
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER, "")
        if not _VALID_ID.match(rid):
            rid = new_request_id()

        # Not reset afterwards: the outermost 500 handler still needs it
        request_id_var.set(rid)
        request.state.request_id = rid
        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
