"""
Authorization Conformance

Route authorization coverage and conformance checks for HTTP services.
"""

__version__ = "1.0.0"

from .catalog import RouteCatalog
from .coverage import (
    FRAMEWORK_ERROR_PATH,
    RouteRegistry,
    analyze_coverage,
    check_coverage,
    exclude_framework_routes,
)
from .decision import decide
from .errors import (
    AuthorizationMismatch,
    ConfigurationError,
    ConformanceError,
    ConformanceFailure,
    CoverageFailure,
    ProbeTimeout,
    TransportError,
)
from .invokers import AsyncHttpxInvoker, HttpxInvoker
from .matrix import AuthorizationCase, as_test_items, generate_matrix
from .normalize import normalize_path
from .probe import RequestInvoker, build_request, probe
from .registry import FastAPIRouteRegistry, StaticRouteRegistry
from .runner import CaseResult, MatrixReport, run_matrix
from .types import (
    AccessPolicy,
    AnyRole,
    ConformanceConfig,
    CoverageReport,
    HttpMethod,
    Outcome,
    ProbeRequest,
    Role,
    RouteAuthSpec,
    RouteKey,
    Unauthenticated,
    any_role,
    role_label,
    unauthenticated,
)

__all__ = [
    # Policy model
    "AccessPolicy",
    "AnyRole",
    "Unauthenticated",
    "any_role",
    "unauthenticated",
    "Role",
    "role_label",
    # Catalog
    "HttpMethod",
    "RouteKey",
    "RouteAuthSpec",
    "RouteCatalog",
    # Coverage
    "FRAMEWORK_ERROR_PATH",
    "CoverageReport",
    "RouteRegistry",
    "StaticRouteRegistry",
    "FastAPIRouteRegistry",
    "analyze_coverage",
    "check_coverage",
    "exclude_framework_routes",
    # Probe
    "normalize_path",
    "ProbeRequest",
    "RequestInvoker",
    "HttpxInvoker",
    "AsyncHttpxInvoker",
    "build_request",
    "probe",
    # Decision & matrix
    "Outcome",
    "decide",
    "AuthorizationCase",
    "generate_matrix",
    "as_test_items",
    "CaseResult",
    "MatrixReport",
    "run_matrix",
    # Config
    "ConformanceConfig",
    # Errors
    "ConformanceError",
    "ConfigurationError",
    "ConformanceFailure",
    "CoverageFailure",
    "AuthorizationMismatch",
    "TransportError",
    "ProbeTimeout",
]
