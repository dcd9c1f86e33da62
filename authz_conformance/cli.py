"""
Authorization Conformance CLI

Runs the coverage check and the full authorization matrix for a catalog
declared in Python source.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from . import __version__
from .catalog import RouteCatalog
from .coverage import RouteRegistry, check_coverage
from .errors import ConfigurationError, CoverageFailure
from .invokers import HttpxInvoker
from .matrix import generate_matrix
from .registry import FastAPIRouteRegistry
from .runner import run_matrix
from .types import ConformanceConfig

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(config_path: str | None) -> ConformanceConfig:
    """Load configuration from file, then override from environment."""
    config_dict: dict = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            with open(path) as f:
                config_dict = json.load(f)
        except ValueError as e:
            raise ConfigurationError(f"Config file {config_path} is not valid JSON: {e}") from e
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Config file {config_path} must contain a JSON object, got {type(config_dict).__name__}"
            )

    if "AUTHZ_BASE_URL" in os.environ:
        config_dict["base_url"] = os.environ["AUTHZ_BASE_URL"]

    if "AUTHZ_TIMEOUT" in os.environ:
        config_dict["timeout_seconds"] = os.environ["AUTHZ_TIMEOUT"]

    if "AUTHZ_CONCURRENCY" in os.environ:
        config_dict["concurrency"] = os.environ["AUTHZ_CONCURRENCY"]

    if "AUTHZ_CSRF_TOKEN" in os.environ:
        config_dict["csrf_token"] = os.environ["AUTHZ_CSRF_TOKEN"]

    try:
        return ConformanceConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def import_object(reference: str) -> Any:
    """Import `package.module:attribute`."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Expected 'module:attribute', got {reference!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name}: {e}") from e

    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(f"{module_name} has no attribute {attribute!r}") from None


def build_client(config: ConformanceConfig, app: Any | None) -> httpx.Client:
    """HTTP client against base_url, or in-process against the app."""
    if config.base_url:
        return httpx.Client(base_url=config.base_url, timeout=config.timeout_seconds)

    if app is not None:
        from fastapi.testclient import TestClient
        return TestClient(app, raise_server_exceptions=False)

    raise ConfigurationError("Either base_url (AUTHZ_BASE_URL) or --app is required")


def run(
    catalog: RouteCatalog,
    roles: list[Any],
    config: ConformanceConfig,
    client: httpx.Client,
    registry: RouteRegistry | None = None,
) -> int:
    """Run coverage (when a registry is available) and the full matrix."""
    exit_code = EXIT_OK

    if registry is not None:
        try:
            report = check_coverage(registry, catalog, config.whitelist_keys())
            print(report.describe())
        except CoverageFailure as e:
            print(str(e))
            exit_code = EXIT_FAILURE

    invoker = HttpxInvoker(
        client,
        role_headers=config.role_headers,
        csrf_token=config.csrf_token,
        csrf_header=config.csrf_header,
    )
    invoker.validate_roles(roles)

    cases = generate_matrix(catalog, roles)
    report = asyncio.run(
        run_matrix(
            cases,
            invoker,
            concurrency=config.concurrency,
            timeout=config.timeout_seconds,
        )
    )
    print(report.summary())

    if not report.ok:
        exit_code = EXIT_FAILURE
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Verify route authorization coverage and conformance",
    )

    parser.add_argument(
        "--catalog",
        required=True,
        help="RouteCatalog to verify, as module:attribute",
    )

    parser.add_argument(
        "--roles",
        required=True,
        help="Iterable of the system's roles (e.g. an Enum), as module:attribute",
    )

    parser.add_argument(
        "--app",
        help="FastAPI application, as module:attribute (enables coverage check)",
        default=None,
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to JSON configuration file",
        default=None,
    )

    parser.add_argument(
        "--no-coverage",
        action="store_true",
        help="Skip the catalog/registry coverage check",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"authz-conformance {__version__}",
    )

    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
        catalog = import_object(args.catalog)
        if not isinstance(catalog, RouteCatalog):
            raise ConfigurationError(f"{args.catalog} is not a RouteCatalog")
        roles = list(import_object(args.roles))
        app = import_object(args.app) if args.app else None

        registry = None
        if app is not None and not args.no_coverage:
            registry = FastAPIRouteRegistry(app)

        with build_client(config, app) as client:
            return run(catalog, roles, config, client, registry)
    except ConfigurationError as e:
        logging.error(str(e))
        return EXIT_CONFIGURATION_ERROR


if __name__ == "__main__":
    sys.exit(main())
