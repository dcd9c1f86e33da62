"""
FastAPI Integration Tests

Drives the sample service in-process through fastapi.testclient.TestClient:
route discovery, coverage, probing with credentials and anti-forgery
headers, and the full matrix as individually reported pytest cases.
"""

from __future__ import annotations

import logging

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from authz_conformance import (
    AuthorizationMismatch,
    ConfigurationError,
    CoverageFailure,
    FastAPIRouteRegistry,
    HttpxInvoker,
    ProbeTimeout,
    RouteAuthSpec,
    RouteCatalog,
    RouteKey,
    TransportError,
    any_role,
    as_test_items,
    check_coverage,
    generate_matrix,
    run_matrix,
    unauthenticated,
)
from authz_conformance.types import HttpMethod, ProbeRequest
from sample_service import CATALOG, CSRF_HEADER, CSRF_TOKEN, ROLE_HEADERS, Role, app

client = TestClient(app, raise_server_exceptions=False)

invoker = HttpxInvoker(
    client,
    role_headers=ROLE_HEADERS,
    csrf_token=CSRF_TOKEN,
    csrf_header=CSRF_HEADER,
)

MATRIX = as_test_items(generate_matrix(CATALOG, Role), invoker)


# =============================================================================
# ROUTE DISCOVERY & COVERAGE
# =============================================================================

class TestFastAPIRouteRegistry:
    def test_lists_application_routes(self):
        routes = FastAPIRouteRegistry(app).list_registered_routes()
        assert routes == {
            RouteKey(method="GET", path="/user/{id}"),
            RouteKey(method="POST", path="/user"),
            RouteKey(method="DELETE", path="/user/{id}"),
            RouteKey(method="GET", path="/profile"),
            RouteKey(method="PUT", path="/profile"),
        }

    def test_excludes_error_route_and_docs(self):
        paths = {r.path for r in FastAPIRouteRegistry(app).list_registered_routes()}
        assert "/error" not in paths
        assert "/openapi.json" not in paths
        assert "/docs" not in paths

    def test_warns_about_mounted_applications(self, caplog):
        sub = FastAPI()

        @sub.get("/status")
        def status():
            return {}

        parent = FastAPI()

        @parent.get("/ping")
        def ping():
            return {}

        parent.mount("/admin", sub)

        with caplog.at_level(logging.WARNING, logger="authz_conformance.registry"):
            routes = FastAPIRouteRegistry(parent).list_registered_routes()

        assert routes == {RouteKey(method="GET", path="/ping")}
        assert "'/admin'" in caplog.text


class TestCoverage:
    def test_sample_catalog_is_in_sync(self):
        assert check_coverage(FastAPIRouteRegistry(app), CATALOG).is_clean

    def test_drift_reports_both_sets(self):
        catalog = RouteCatalog.from_iterable(
            [spec for spec in CATALOG if spec.key != RouteKey(method="DELETE", path="/user/{id}")]
            + [RouteAuthSpec.of("GET", "/no-such-route", unauthenticated())]
        )

        with pytest.raises(CoverageFailure) as exc_info:
            check_coverage(FastAPIRouteRegistry(app), catalog)

        report = exc_info.value.report
        assert report.untested == {RouteKey(method="DELETE", path="/user/{id}")}
        assert report.nonexistent == {RouteKey(method="GET", path="/no-such-route")}


# =============================================================================
# AUTHORIZATION MATRIX
# =============================================================================

@pytest.mark.parametrize("name, check", MATRIX, ids=[name for name, _ in MATRIX])
def test_authorization_matrix(name, check):
    check()


def test_matrix_size():
    assert len(MATRIX) == len(CATALOG) * (1 + len(Role))


class TestMisdeclaredPolicies:
    def test_public_route_declared_as_role_protected(self):
        spec = RouteAuthSpec.of("GET", "/user/{id}", any_role(Role.ADMIN))
        anonymous, admin, basic = generate_matrix(RouteCatalog.of(spec), Role)

        with pytest.raises(AuthorizationMismatch, match="to require authentication"):
            anonymous.check(invoker)
        admin.check(invoker)
        with pytest.raises(AuthorizationMismatch, match="role BASIC to be FORBIDDEN"):
            basic.check(invoker)

    def test_admin_route_declared_for_basic(self):
        spec = RouteAuthSpec.of("POST", "/user", any_role(Role.BASIC))
        cases = {c.name: c for c in generate_matrix(RouteCatalog.of(spec), Role)}

        with pytest.raises(AuthorizationMismatch, match="role BASIC to be PERMITTED"):
            cases["BASIC POST /user"].check(invoker)
        with pytest.raises(AuthorizationMismatch, match="role ADMIN to be FORBIDDEN"):
            cases["ADMIN POST /user"].check(invoker)

    def test_undeclared_method_is_method_not_allowed(self):
        spec = RouteAuthSpec.of("PATCH", "/profile", any_role(Role.ADMIN))
        for case in generate_matrix(RouteCatalog.of(spec), Role):
            with pytest.raises(AuthorizationMismatch, match="route/method pair does not exist"):
                case.check(invoker)


# =============================================================================
# INVOKER
# =============================================================================

class TestHttpxInvoker:
    def test_missing_anti_forgery_token_masks_authorization(self):
        """Without the token every mutating probe is rejected before auth."""
        no_csrf = HttpxInvoker(client, role_headers=ROLE_HEADERS)
        spec = RouteAuthSpec.of("POST", "/user", any_role(Role.ADMIN))
        anonymous = generate_matrix(RouteCatalog.of(spec), [])[0]

        with pytest.raises(AuthorizationMismatch, match="403"):
            anonymous.check(no_csrf)

    def test_callable_csrf_token(self):
        calls = []

        def token() -> str:
            calls.append(1)
            return CSRF_TOKEN

        dynamic = HttpxInvoker(client, role_headers=ROLE_HEADERS, csrf_token=token)
        request = ProbeRequest(method=HttpMethod.PUT, path="/profile", identity=Role.BASIC, anti_forgery=True)

        assert dynamic.invoke(request) == 200
        assert calls == [1]

    def test_get_does_not_fetch_csrf_token(self):
        def token() -> str:
            raise AssertionError("token requested for GET")

        lazy = HttpxInvoker(client, role_headers=ROLE_HEADERS, csrf_token=token)
        assert lazy.invoke(ProbeRequest(method=HttpMethod.GET, path="/user/0")) == 200

    def test_credentials_by_role_or_label(self):
        by_role = HttpxInvoker(client, role_headers={Role.ADMIN: ROLE_HEADERS["ADMIN"]})
        assert by_role.credentials_for(Role.ADMIN) == ROLE_HEADERS["ADMIN"]
        assert invoker.credentials_for(Role.BASIC) == ROLE_HEADERS["BASIC"]

    def test_validate_roles(self):
        partial = HttpxInvoker(client, role_headers={"ADMIN": ROLE_HEADERS["ADMIN"]})
        with pytest.raises(ConfigurationError, match="BASIC"):
            partial.validate_roles(Role)
        invoker.validate_roles(Role)

    def test_timeout_maps_to_probe_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        timing_out = HttpxInvoker(httpx.Client(transport=httpx.MockTransport(handler), base_url="http://svc"))
        with pytest.raises(ProbeTimeout):
            timing_out.invoke(ProbeRequest(method=HttpMethod.GET, path="/x"))

    def test_connect_error_maps_to_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        down = HttpxInvoker(httpx.Client(transport=httpx.MockTransport(handler), base_url="http://svc"))
        with pytest.raises(TransportError, match="refused"):
            down.invoke(ProbeRequest(method=HttpMethod.GET, path="/x"))


@pytest.mark.asyncio
async def test_run_matrix_against_service():
    report = await run_matrix(generate_matrix(CATALOG, Role), invoker, concurrency=4, timeout=10)
    assert report.ok, report.summary()
    assert report.total == 15
