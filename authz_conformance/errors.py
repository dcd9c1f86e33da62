"""
Authorization Conformance Errors

Two families:
- ConfigurationError is fatal and raised while the catalog or matrix is built.
- ConformanceFailure subclasses are reported per case (or per coverage check)
  and subclass AssertionError so any test harness records them as failures.
"""

from __future__ import annotations

from typing import Any


class ConformanceError(Exception):
    """Base class for all engine errors."""
    pass


class ConfigurationError(ConformanceError):
    """Raised when the catalog or run configuration is malformed."""
    pass


class ConformanceFailure(AssertionError, ConformanceError):
    """Base class for reported (non-fatal) failures."""
    pass


class CoverageFailure(ConformanceFailure):
    """Raised when the declared catalog and the live registry have drifted."""

    def __init__(self, report: Any) -> None:
        self.report = report
        super().__init__(report.describe())


class AuthorizationMismatch(ConformanceFailure):
    """Raised when an observed status contradicts the decision table."""

    def __init__(self, case: Any, outcome: Any) -> None:
        self.case = case
        self.outcome = outcome
        super().__init__(f"[{case.name}] {outcome.message}")


class TransportError(ConformanceFailure):
    """Raised when the request invoker fails to complete a probe."""

    def __init__(self, request: Any, message: str) -> None:
        self.request = request
        super().__init__(message)


class ProbeTimeout(TransportError):
    """Raised when a probe exceeds its timeout."""
    pass
