"""
Coverage Analyzer

Diffs the live route registry against the declared catalog:

    untested    = R \\ keys(C)
    nonexistent = (keys(C) \\ W) \\ R

R is the registry's route set with the framework error route removed,
C the catalog, W an explicit whitelist of implicit routes. Comparison is
by exact RouteKey (method + raw template), never by matched paths.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, Protocol

from .catalog import RouteCatalog
from .types import CoverageReport, RouteKey

logger = logging.getLogger(__name__)

# Route the web framework uses to render unhandled errors. It is plumbing,
# not an application endpoint, and never counts towards coverage.
FRAMEWORK_ERROR_PATH = "/error"


class RouteRegistry(Protocol):
    """Supplies the live set of routes served by the service under test."""

    def list_registered_routes(self) -> set[RouteKey]:
        ...


def exclude_framework_routes(routes: Iterable[RouteKey]) -> frozenset[RouteKey]:
    """Drop the framework error route, at any method."""
    return frozenset(r for r in routes if r.path != FRAMEWORK_ERROR_PATH)


def analyze_coverage(
    registered: Iterable[RouteKey],
    catalog: RouteCatalog,
    whitelist: AbstractSet[RouteKey] = frozenset(),
) -> CoverageReport:
    """
    Compute the symmetric drift between registry and catalog.

    Args:
        registered: Routes served by the service
        catalog: Declared route specs
        whitelist: Declared routes exempt from the "nonexistent" check

    Returns:
        CoverageReport with `untested` and `nonexistent` sets
    """
    served = exclude_framework_routes(registered)
    declared = catalog.keys()

    return CoverageReport(
        untested=served - declared,
        nonexistent=(declared - frozenset(whitelist)) - served,
    )


def check_coverage(
    registry: RouteRegistry,
    catalog: RouteCatalog,
    whitelist: AbstractSet[RouteKey] = frozenset(),
) -> CoverageReport:
    """
    Query the registry, analyze coverage and raise on drift.

    Raises:
        CoverageFailure: If either `untested` or `nonexistent` is non-empty.
            Both sets are listed in the failure message.
    """
    report = analyze_coverage(registry.list_registered_routes(), catalog, whitelist)

    if report.is_clean:
        logger.info(f"Coverage clean: {len(catalog)} declared routes match the registry")
    else:
        logger.warning(
            f"Coverage drift: {len(report.untested)} untested, "
            f"{len(report.nonexistent)} nonexistent"
        )

    report.raise_for_drift()
    return report
