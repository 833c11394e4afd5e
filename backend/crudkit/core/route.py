"""
crudkit Backend — Resource Routes
==================================

What:  Declarative route definitions, the create_route() normalizer and the
       ResourceRoute builder that derives the five CRUD routes of a resource.
Why:   A resource needs one line to get documented, authenticated,
       validated endpoints:
           ResourceRoute("notifications", controller=NotificationController())
How:   RouteDefinition is framework-neutral; register_routes() turns each
       definition into a FastAPI endpoint with add_api_route().

Default CRUD routes (base_path = "notifications"):
    list     GET     /notifications            paginated
    detail   GET     /notifications/{uid}
    create   PUT     /notifications            body {"data": {...}}
    update   POST    /notifications/{uid}      body {"data": {...}}
    delete   DELETE  /notifications/{id}       soft delete

Normalization (create_route):
    - tags default to ["api", <path segments without params>]
    - auth=None applies the default scheme and its header model,
      auth=False makes the route public, a string names another scheme
    - a permissive CORS policy unless cors_disable (applied by
      RouteCORSMiddleware, which reads RouteDefinition.cors)
    - a default response model and 400/403/404/500 error docs
    - the handler is wrapped so unexpected exceptions are logged with the
      route tags before the global handler answers with code 1000
"""

import dataclasses
import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Type, Union

from fastapi import Body, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from crudkit.auth import AuthorizationHeaders, Credentials, require_auth
from crudkit.config import settings
from crudkit.core.context import RequestContext
from crudkit.core.controller import ResourceController, validation_errors
from crudkit.core.resource import ResourceConfig
from crudkit.exceptions import AppError, InvalidConfiguration, ValidationError
from crudkit.schemas.common import (
    ERROR_RESPONSES,
    ErrorResponse,
    IdParams,
    SimplePaginationQuery,
    UidParams,
    basic_response,
    data_payload,
    paginate,
)

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext], Awaitable[Dict[str, Any]]]

ACTIONS = ("list", "detail", "create", "update", "delete")

DEFAULT_CORS = {
    "origin": ["*"],
    "additional_headers": ["cache-control", "x-requested-with"],
}

BasicResponse = basic_response("Basic")


@dataclass
class RouteDefinition:
    """
    One HTTP route, before registration.

    auth:  None → default scheme, False → public, "<name>" → named scheme
    params/query/headers: pydantic models validated against the request
    payload: JSON body model
    upload: expects a multipart "file" field (passed as payload["file"])
    """

    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    description: str = ""
    notes: str = ""
    tags: Optional[List[str]] = None
    params: Optional[Type[BaseModel]] = None
    query: Optional[Type[BaseModel]] = None
    payload: Optional[Type[BaseModel]] = None
    headers: Optional[Type[BaseModel]] = None
    response: Optional[Type[BaseModel]] = None
    responses: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    auth: Union[None, bool, str] = None
    cors: Optional[Dict[str, List[str]]] = None
    cors_disable: bool = False
    upload: bool = False
    status_code: int = 200


def _path_tags(path: str) -> List[str]:
    segments = [s for s in path.strip("/").split("/") if s and not s.startswith("{")]
    return ["api", *segments]


def _wrap_handler(handler: Handler, tags: Sequence[str]) -> Handler:
    @functools.wraps(handler)
    async def wrapped(ctx: RequestContext) -> Dict[str, Any]:
        try:
            return await handler(ctx)
        except AppError:
            raise
        except Exception as exc:
            ctx.log(["error", *tags], exc)
            raise

    return wrapped


def create_route(route: Union[RouteDefinition, Dict[str, Any]]) -> RouteDefinition:
    """Return a normalized copy of a route definition."""
    if isinstance(route, dict):
        route = RouteDefinition(**route)
    if not route.path or route.handler is None:
        raise InvalidConfiguration("Route requires a path and a handler")

    tags = route.tags or _path_tags(route.path)
    auth = route.auth
    headers = route.headers
    responses = {**ERROR_RESPONSES, **route.responses}

    if auth is None or auth is True:
        auth = settings.auth_name
    if auth is not False:
        headers = headers or AuthorizationHeaders
        responses.setdefault(401, {"description": "Unauthorized", "model": ErrorResponse})

    return dataclasses.replace(
        route,
        method=route.method.upper(),
        handler=_wrap_handler(route.handler, tags),
        tags=tags,
        auth=auth,
        headers=headers,
        responses=responses,
        cors=None if route.cors_disable else (route.cors or DEFAULT_CORS),
        response=route.response or BasicResponse,
    )


class ResourceRoute:
    """
    Builds the CRUD routes of one resource.

    Args:
        base_path:        URL segment, e.g. "notifications"
        config:           ResourceConfig for an auto-built controller
        controller:       Explicit controller instance (wins over everything)
        controller_class: Controller class built with `config`
        actions:          Subset of ACTIONS to expose; all of them by default
                          when auto_controller is set
        route_options:    Per-action RouteDefinition overrides, e.g.
                          {"list": {"description": "..."}}
    """

    def __init__(
        self,
        base_path: str,
        config: Optional[ResourceConfig] = None,
        controller: Optional[ResourceController] = None,
        controller_class: Optional[Type[ResourceController]] = None,
        actions: Optional[Iterable[str]] = None,
        auto_controller: bool = True,
        auth: Union[None, bool, str] = None,
        route_options: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        if not base_path:
            raise InvalidConfiguration("Base path must not be empty")
        self.base_path = base_path.strip("/")

        if controller is None:
            controller = (controller_class or ResourceController)(config)
        self.controller = controller

        if actions is None:
            actions = ACTIONS if auto_controller else ()
        self.actions = list(actions)
        unknown = set(self.actions) - set(ACTIONS)
        if unknown:
            raise InvalidConfiguration(f"Unknown actions: {sorted(unknown)}")

        self.auth = auth
        self.route_options = route_options or {}
        self.routes: List[RouteDefinition] = [
            create_route(getattr(self, f"create_{action}_route")()) for action in self.actions
        ]

    # ── Helpers ───────────────────────────────────────────────────────────

    @property
    def config(self) -> ResourceConfig:
        return self.controller.config

    @property
    def model_name(self) -> str:
        key = self.config.data_key
        return key[:1].upper() + key[1:]

    def _build(self, action: str, **defaults: Any) -> RouteDefinition:
        defaults.setdefault("tags", ["api", self.base_path, action])
        defaults.setdefault("auth", self.auth)
        defaults.setdefault("name", f"{self.base_path}_{action}")
        return RouteDefinition(**{**defaults, **self.route_options.get(action, {})})

    # ── Builders ──────────────────────────────────────────────────────────

    def create_list_route(self) -> RouteDefinition:
        plural = self.config.data_key_plural
        return self._build(
            "list",
            method="GET",
            path=f"/{self.base_path}",
            handler=self.controller.list,
            description=f"Get list {plural}",
            notes=f"Returns a paginated list of {plural}",
            query=SimplePaginationQuery,
            response=paginate(
                f"{self.model_name}List",
                {plural: List[self.config.schemas.item]},
            ),
        )

    def create_detail_route(self) -> RouteDefinition:
        key = self.config.data_key
        return self._build(
            "detail",
            method="GET",
            path=f"/{self.base_path}/{{uid}}",
            handler=self.controller.detail,
            description=f"Get {key} detail",
            notes=f"Returns {key} information by uid",
            params=UidParams,
            response=basic_response(f"{self.model_name}Detail", {key: self.config.schemas.response}),
        )

    def create_create_route(self) -> RouteDefinition:
        key = self.config.data_key
        schema = self.config.schemas.create_request
        return self._build(
            "create",
            method="PUT",
            path=f"/{self.base_path}",
            handler=self.controller.create,
            description=f"Create {key}",
            notes=f"Creates a new {key}",
            payload=data_payload(f"{self.model_name}Create", schema) if schema else None,
            response=basic_response(f"{self.model_name}Create", {key: self.config.schemas.response}),
        )

    def create_update_route(self) -> RouteDefinition:
        key = self.config.data_key
        schema = self.config.schemas.update_request
        return self._build(
            "update",
            method="POST",
            path=f"/{self.base_path}/{{uid}}",
            handler=self.controller.update,
            description=f"Update {key}",
            notes=f"Updates {key} by uid",
            params=UidParams,
            payload=data_payload(f"{self.model_name}Update", schema) if schema else None,
            response=basic_response(f"{self.model_name}Update", {key: self.config.schemas.response}),
        )

    def create_delete_route(self) -> RouteDefinition:
        key = self.config.data_key
        return self._build(
            "delete",
            method="DELETE",
            path=f"/{self.base_path}/{{id}}",
            handler=self.controller.delete,
            description=f"Delete {key}",
            notes=f"Marks {key} as deleted",
            params=IdParams,
            response=basic_response(f"{self.model_name}Delete", {key: self.config.schemas.response}),
        )


# ══════════════════════════════════════════════════════════════════════════
# FastAPI Registration
# ══════════════════════════════════════════════════════════════════════════


def _validate(
    model: Optional[Type[BaseModel]],
    values: Dict[str, Any],
    location: str,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    if model is None:
        return
    try:
        model.model_validate(values, context=context)
    except PydanticValidationError as exc:
        raise ValidationError(
            message=f"Invalid request {location}",
            field=location,
            errors=validation_errors(exc),
        )


def build_endpoint(route: RouteDefinition) -> Callable:
    """
    Build the FastAPI endpoint for a normalized route.

    The signature is assembled per route so FastAPI documents and validates
    exactly the body (JSON or multipart) and auth the route declares.
    """

    async def endpoint(request: Request, **kwargs: Any) -> JSONResponse:
        # Configuration-dependent bounds are checked against this app's settings
        context = {"settings": request.app.state.settings}
        _validate(route.params, dict(request.path_params), "params", context)
        _validate(route.query, dict(request.query_params), "query", context)
        _validate(route.headers, dict(request.headers), "headers", context)

        payload = None
        body = kwargs.get("payload")
        if body is not None:
            payload = body.model_dump(exclude_unset=True)
            _validate(route.payload, payload, "payload", context)
        upload = kwargs.get("file")
        if upload is not None:
            payload = {**(payload or {}), "file": upload}

        ctx = RequestContext.from_request(request, payload, kwargs.get("credentials"))
        result = await route.handler(ctx)

        headers = {}
        pagination = (result.get("meta") or {}).get("pagination")
        if pagination:
            headers["X-Total-Count"] = str(pagination["total"])
        return JSONResponse(content=result, status_code=route.status_code, headers=headers)

    parameters = [
        inspect.Parameter("request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request),
    ]
    if route.auth is not False:
        parameters.append(inspect.Parameter(
            "credentials",
            inspect.Parameter.KEYWORD_ONLY,
            annotation=Credentials,
            default=Depends(require_auth(route.auth)),
        ))
    if route.payload is not None:
        parameters.append(inspect.Parameter(
            "payload",
            inspect.Parameter.KEYWORD_ONLY,
            annotation=route.payload,
            default=Body(...),
        ))
    if route.upload:
        parameters.append(inspect.Parameter(
            "file",
            inspect.Parameter.KEYWORD_ONLY,
            annotation=UploadFile,
            default=File(...),
        ))

    endpoint.__signature__ = inspect.Signature(parameters)
    endpoint.__name__ = route.name or route.handler.__name__
    return endpoint


def _openapi_parameters(route: RouteDefinition) -> Dict[str, Any]:
    parameters = []
    for location, model in (("path", route.params), ("query", route.query)):
        if model is None:
            continue
        for name, info in model.model_fields.items():
            parameters.append({
                "name": info.alias or name,
                "in": location,
                "required": location == "path" or info.is_required(),
                "description": info.description or "",
                "schema": {"type": "integer" if info.annotation in (int, Optional[int]) else "string"},
            })
    if route.query is SimplePaginationQuery:
        parameters.append({
            "name": "filter[<field>]",
            "in": "query",
            "required": False,
            "description": "Filter by field value; repeat the key to match several values",
            "schema": {"type": "string"},
        })
    return {"parameters": parameters} if parameters else {}


def register_routes(app: Any, routes: Iterable[RouteDefinition]) -> None:
    """Add normalized routes to a FastAPI app or APIRouter."""
    for route in routes:
        app.add_api_route(
            route.path,
            build_endpoint(route),
            methods=[route.method],
            name=route.name,
            summary=route.description or None,
            description=route.notes or None,
            tags=[tag for tag in route.tags if tag != "api"][:1] or None,
            response_model=route.response,
            responses=route.responses,
            status_code=route.status_code,
            openapi_extra=_openapi_parameters(route) or None,
        )
        logger.debug("Route registered: %s %s", route.method, route.path)
