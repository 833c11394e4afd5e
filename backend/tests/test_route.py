"""
crudkit Backend — Route Builder Unit Tests
===========================================

What:  Tests for create_route normalization, the ResourceRoute CRUD
       builders and the ProfileRoute table.
"""

import logging

import pytest

from crudkit.auth import AuthorizationHeaders
from crudkit.config import settings
from crudkit.controllers.notification import NotificationController
from crudkit.controllers.profile import ProfileController
from crudkit.core.controller import ResourceController
from crudkit.core.resource import ResourceConfig
from crudkit.core.route import DEFAULT_CORS, ResourceRoute, RouteDefinition, create_route
from crudkit.exceptions import InvalidConfiguration, NotFoundError
from crudkit.routes.profile import PROFILE_ROUTES, ProfileRoute
from crudkit.schemas.common import SimplePaginationQuery, UidParams
from crudkit.schemas.notification import notification_schemas


async def handler(ctx):
    return {"meta": {"message": "ok"}}


class TestCreateRoute:

    def test_defaults(self):
        route = create_route(RouteDefinition(method="get", path="/reports/{uid}/items", handler=handler))

        assert route.method == "GET"
        assert route.tags == ["api", "reports", "items"]
        assert route.auth == settings.auth_name
        assert route.headers is AuthorizationHeaders
        assert route.cors == DEFAULT_CORS
        assert route.response is not None
        assert {400, 401, 403, 404, 500} <= set(route.responses)

    def test_accepts_dict(self):
        route = create_route({"method": "POST", "path": "/things", "handler": handler})
        assert route.path == "/things"

    def test_public_route_has_no_auth_headers(self):
        route = create_route(RouteDefinition(method="GET", path="/open", handler=handler, auth=False))

        assert route.auth is False
        assert route.headers is None
        assert 401 not in route.responses

    def test_named_auth_scheme_kept(self):
        route = create_route(RouteDefinition(method="GET", path="/x", handler=handler, auth="device"))
        assert route.auth == "device"

    def test_cors_disable(self):
        route = create_route(RouteDefinition(method="GET", path="/x", handler=handler, cors_disable=True))
        assert route.cors is None

    def test_explicit_tags_kept(self):
        route = create_route(RouteDefinition(method="GET", path="/x", handler=handler, tags=["api", "custom"]))
        assert route.tags == ["api", "custom"]

    def test_missing_handler_rejected(self):
        with pytest.raises(InvalidConfiguration):
            create_route({"method": "GET", "path": "/x", "handler": None})

    def test_missing_path_rejected(self):
        with pytest.raises(InvalidConfiguration):
            create_route({"method": "GET", "path": "", "handler": handler})

    @pytest.mark.asyncio
    async def test_wrapped_handler_logs_unexpected_errors(self, make_ctx, caplog):
        async def broken(ctx):
            raise RuntimeError("boom")

        route = create_route(RouteDefinition(method="GET", path="/broken", handler=broken))

        with caplog.at_level(logging.ERROR, logger="crudkit.request"):
            with pytest.raises(RuntimeError):
                await route.handler(make_ctx())

        assert "error,api,broken" in caplog.text

    @pytest.mark.asyncio
    async def test_wrapped_handler_passes_app_errors_through(self, make_ctx, caplog):
        async def missing(ctx):
            raise NotFoundError()

        route = create_route(RouteDefinition(method="GET", path="/missing", handler=missing))

        with caplog.at_level(logging.ERROR, logger="crudkit.request"):
            with pytest.raises(NotFoundError):
                await route.handler(make_ctx())

        assert caplog.records == []


class TestResourceRoute:

    def setup_method(self):
        self.controller = NotificationController()

    def by_action(self, resource_route):
        return {route.name.split("_", 1)[1]: route for route in resource_route.routes}

    def test_all_actions_by_default(self):
        routes = self.by_action(ResourceRoute("notifications", controller=self.controller))

        assert {name: (r.method, r.path) for name, r in routes.items()} == {
            "list": ("GET", "/notifications"),
            "detail": ("GET", "/notifications/{uid}"),
            "create": ("PUT", "/notifications"),
            "update": ("POST", "/notifications/{uid}"),
            "delete": ("DELETE", "/notifications/{id}"),
        }

    def test_handlers_bound_to_matching_actions(self):
        routes = self.by_action(ResourceRoute("notifications", controller=self.controller))

        for action in ("list", "detail", "create", "update", "delete"):
            assert routes[action].handler.__wrapped__ == getattr(self.controller, action)

    def test_route_models(self):
        routes = self.by_action(ResourceRoute("notifications", controller=self.controller))

        assert routes["list"].query is SimplePaginationQuery
        assert routes["detail"].params is UidParams
        assert routes["update"].payload is not None
        assert routes["list"].tags == ["api", "notifications", "list"]

    def test_action_subset(self):
        resource_route = ResourceRoute("notifications", controller=self.controller, actions=["list"])
        assert [r.method for r in resource_route.routes] == ["GET"]

    def test_no_routes_without_auto_controller(self):
        resource_route = ResourceRoute("notifications", controller=self.controller, auto_controller=False)
        assert resource_route.routes == []

    def test_unknown_action_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ResourceRoute("notifications", controller=self.controller, actions=["purge"])

    def test_empty_base_path_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ResourceRoute("", controller=self.controller)

    def test_controller_built_from_config(self):
        config = ResourceConfig(store_name="Notification", schemas=notification_schemas)

        resource_route = ResourceRoute("items", config=config)

        assert type(resource_route.controller) is ResourceController
        assert resource_route.controller.config is config

    def test_controller_class_built_from_config(self):
        config = ResourceConfig(store_name="Notification", schemas=notification_schemas)

        resource_route = ResourceRoute("items", config=config, controller_class=NotificationController)

        assert isinstance(resource_route.controller, NotificationController)

    def test_missing_config_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ResourceRoute("items")

    def test_route_options_override_defaults(self):
        resource_route = ResourceRoute(
            "notifications",
            controller=self.controller,
            actions=["list"],
            auth=False,
            route_options={"list": {"description": "Inbox"}},
        )

        [route] = resource_route.routes
        assert route.description == "Inbox"
        assert route.auth is False


class TestProfileRoute:

    def test_all_routes(self):
        profile_route = ProfileRoute()
        assert profile_route.names == list(PROFILE_ROUTES)
        paths = {(r.method, r.path) for r in profile_route.routes}
        assert ("POST", "/profile/confirm-otp") in paths
        assert ("GET", "/profile/new-otp") in paths

    def test_settings_route_is_public(self):
        [route] = ProfileRoute(routes=["settings"]).routes
        assert route.auth is False

    def test_except_routes(self):
        profile_route = ProfileRoute(except_routes=["upload-avatar"])
        assert "upload-avatar" not in profile_route.names
        assert all(r.path != "/profile/avatar" for r in profile_route.routes)

    def test_upload_route_expects_file(self):
        [route] = ProfileRoute(routes=["upload-avatar"]).routes
        assert route.upload is True

    def test_custom_controller(self):
        controller = ProfileController()
        [route] = ProfileRoute(controller=controller, routes=["profile"]).routes
        assert route.handler.__wrapped__ == controller.get_profile

    def test_unknown_route_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ProfileRoute(routes=["profile", "delete-account"])


def test_openapi_documents_every_route():
    from crudkit.main import create_app

    schema = create_app().openapi()

    assert "/notifications" in schema["paths"]
    assert "delete" in schema["paths"]["/notifications/{id}"]
    assert "/profile/confirm-otp" in schema["paths"]
    list_params = {p["name"] for p in schema["paths"]["/notifications"]["get"]["parameters"]}
    assert {"page", "pageSize", "filter[<field>]"} <= list_params
