"""
Route Registry Adapters

Adapt a framework's routing metadata to the RouteKey shape consumed by the
coverage analyzer.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fastapi import FastAPI
from fastapi.routing import APIRoute
from starlette.routing import Mount

from .coverage import exclude_framework_routes
from .types import RouteKey

logger = logging.getLogger(__name__)


class StaticRouteRegistry:
    """Registry backed by a fixed set of routes."""

    def __init__(self, routes: Iterable[RouteKey]) -> None:
        self._routes = frozenset(routes)

    def list_registered_routes(self) -> set[RouteKey]:
        return set(exclude_framework_routes(self._routes))


class FastAPIRouteRegistry:
    """
    Registry reading the live route table of a FastAPI application.

    Only APIRoute entries are application endpoints; the OpenAPI schema and
    documentation pages are plain Starlette routes and are skipped. Each
    declared method of an APIRoute yields one RouteKey.

    Mounted sub-applications are not traversed. Their routes never appear
    in the registry, so a warning is logged for each mount.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    def list_registered_routes(self) -> set[RouteKey]:
        routes: set[RouteKey] = set()

        for route in self.app.routes:
            if isinstance(route, Mount):
                logger.warning(
                    f"Skipping routes mounted at {route.path!r}: sub-applications are not inspected"
                )
                continue
            if not isinstance(route, APIRoute):
                continue
            for method in route.methods:
                routes.add(RouteKey(method=method, path=route.path))

        routes = set(exclude_framework_routes(routes))
        logger.debug(f"Discovered {len(routes)} registered routes")
        return routes
