"""
Test Matrix Generator

Expands a catalog into one anonymous case per spec plus one case per
(spec, role), for n + n*k cases in total. The matrix is fully materialized
up front so a harness can report totals before anything runs.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from .catalog import RouteCatalog
from .decision import decide
from .errors import AuthorizationMismatch, ConfigurationError
from .probe import RequestInvoker, probe
from .types import Outcome, Role, RouteAuthSpec, role_label

logger = logging.getLogger(__name__)


class AuthorizationCase(BaseModel):
    """One probe of one route spec under one identity (None = anonymous)."""

    model_config = ConfigDict(frozen=True)

    name: str
    spec: RouteAuthSpec
    identity: Optional[Any] = None

    def expect(self, status: int) -> Outcome:
        """Apply the decision table to an observed status."""
        return decide(self.spec.access, self.spec.key, self.identity, status)

    async def execute(
        self,
        invoker: RequestInvoker,
        timeout: float | None = None,
    ) -> Outcome:
        """Probe the route and decide. Transport failures propagate."""
        status = await probe(self.spec, self.identity, invoker, timeout)
        return self.expect(status)

    def check(
        self,
        invoker: RequestInvoker,
        timeout: float | None = None,
    ) -> Outcome:
        """
        Run this case synchronously as a test assertion.

        Not for use inside a running event loop; await `execute` there.

        Raises:
            AuthorizationMismatch: If the status contradicts the policy.
            TransportError: If the probe could not complete.
        """
        outcome = asyncio.run(self.execute(invoker, timeout))
        if not outcome.passed:
            raise AuthorizationMismatch(self, outcome)
        return outcome


def case_name(spec: RouteAuthSpec, identity: Role | None) -> str:
    return f"{role_label(identity)} {spec.key.method} {spec.path}"


def generate_matrix(
    catalog: RouteCatalog,
    roles: Iterable[Role],
) -> tuple[AuthorizationCase, ...]:
    """
    Generate every case for `catalog` and the role set `roles`.

    Anonymous cases come first, in catalog order, followed by the role
    cases grouped by spec. Repeated roles count once.

    Raises:
        ConfigurationError: If two roles share a label, which would make
            case names ambiguous.
    """
    role_set = list(dict.fromkeys(roles))

    cases = [
        AuthorizationCase(name=case_name(spec, None), spec=spec, identity=None)
        for spec in catalog
    ]
    for spec in catalog:
        for role in role_set:
            cases.append(
                AuthorizationCase(name=case_name(spec, role), spec=spec, identity=role)
            )

    seen: set[str] = set()
    for case in cases:
        if case.name in seen:
            raise ConfigurationError(f"Ambiguous case name {case.name!r}: role labels collide")
        seen.add(case.name)

    logger.info(
        f"Generated {len(cases)} cases for {len(catalog)} routes and {len(role_set)} roles"
    )
    return tuple(cases)


def as_test_items(
    cases: Iterable[AuthorizationCase],
    invoker: RequestInvoker,
    timeout: float | None = None,
) -> list[tuple[str, Callable[[], Outcome]]]:
    """
    Pair each case name with a zero-argument assertion.

    Suitable for any harness, e.g.
    `pytest.mark.parametrize("name, check", items, ids=[n for n, _ in items])`.
    """
    return [
        (case.name, functools.partial(case.check, invoker, timeout))
        for case in cases
    ]
