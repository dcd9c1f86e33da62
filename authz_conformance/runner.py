"""
Concurrent matrix execution.

Cases share nothing but the read-only catalog, so they run concurrently,
bounded only by a semaphore sized to what the service under test tolerates.
A timeout or transport error fails its own case and nothing else; there are
no retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .errors import ConfigurationError, ProbeTimeout, TransportError
from .matrix import AuthorizationCase
from .probe import RequestInvoker

logger = logging.getLogger(__name__)


class CaseResult(BaseModel):
    """Result of one executed case."""

    name: str
    passed: bool
    status: Optional[int] = None
    message: Optional[str] = None
    timed_out: bool = False


class MatrixReport(BaseModel):
    """Results of a matrix run, in matrix order."""

    results: list[CaseResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def failures(self) -> list[CaseResult]:
        return [r for r in self.results if not r.passed]

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        lines = [f"{self.total} cases: {self.passed} passed, {self.failed} failed"]
        for failure in self.failures:
            lines.append(f"  FAIL {failure.name}: {failure.message}")
        return "\n".join(lines)


async def run_case(
    case: AuthorizationCase,
    invoker: RequestInvoker,
    timeout: float | None = None,
) -> CaseResult:
    """Execute one case, converting transport failures into a failed result."""
    try:
        outcome = await case.execute(invoker, timeout)
    except TransportError as e:
        logger.warning(f"{case.name}: {e}")
        return CaseResult(
            name=case.name,
            passed=False,
            message=str(e),
            timed_out=isinstance(e, ProbeTimeout),
        )

    if not outcome.passed:
        logger.warning(f"{case.name}: {outcome.message}")

    return CaseResult(
        name=case.name,
        passed=outcome.passed,
        status=outcome.status,
        message=outcome.message,
    )


async def run_matrix(
    cases: Sequence[AuthorizationCase],
    invoker: RequestInvoker,
    *,
    concurrency: int = 8,
    timeout: float | None = None,
) -> MatrixReport:
    """
    Execute every case concurrently and collect the results.

    Args:
        cases: Generated matrix
        invoker: Request invoker for the service under test
        concurrency: Maximum number of in-flight probes
        timeout: Per-probe timeout in seconds

    Returns:
        MatrixReport with one result per case, in input order
    """
    if concurrency < 1:
        raise ConfigurationError("concurrency must be at least 1")

    semaphore = asyncio.Semaphore(concurrency)

    async def bounded(case: AuthorizationCase) -> CaseResult:
        async with semaphore:
            return await run_case(case, invoker, timeout)

    results = await asyncio.gather(*(bounded(case) for case in cases))
    report = MatrixReport(results=list(results))

    logger.info(f"Matrix run complete: {report.passed}/{report.total} passed")
    return report
