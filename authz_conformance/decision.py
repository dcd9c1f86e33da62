"""
Decision Table

Maps (access policy, identity, observed status) to pass/fail.

Precedence:
  1. 405 always fails: the route/method pair does not exist.
  2. Anonymous:
       Unauthenticated → fail iff 401
       AnyRole         → pass iff 401 (missing authentication, not 403)
  3. Authenticated as role r:
       Unauthenticated       → fail iff 403
       AnyRole, r in roles   → fail iff 403
       AnyRole, r not in     → pass iff 403
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Union

from .types import AnyRole, Outcome, Role, RouteKey, Unauthenticated, role_label

UNAUTHORIZED = HTTPStatus.UNAUTHORIZED.value
FORBIDDEN = HTTPStatus.FORBIDDEN.value
METHOD_NOT_ALLOWED = HTTPStatus.METHOD_NOT_ALLOWED.value


def _status_text(status: int) -> str:
    try:
        return f"{status} {HTTPStatus(status).phrase.upper()}"
    except ValueError:
        return str(status)


def _pass(status: int) -> Outcome:
    return Outcome(passed=True, status=status)


def _fail(status: int, message: str) -> Outcome:
    return Outcome(passed=False, status=status, message=message)


def decide(
    policy: Union[Unauthenticated, AnyRole],
    route: RouteKey,
    identity: Role | None,
    status: int,
) -> Outcome:
    """
    Decide whether `status` conforms to `policy` for `identity` on `route`.

    Pure and total. Every failing Outcome names method, route, role (when
    authenticated) and the observed status.
    """
    got = _status_text(status)

    if status == METHOD_NOT_ALLOWED:
        return _fail(
            status,
            f"{route}: route/method pair does not exist (got {got})",
        )

    if identity is None:
        if isinstance(policy, Unauthenticated):
            if status == UNAUTHORIZED:
                return _fail(
                    status,
                    f"Expected {route} not to require authentication, but got {got}",
                )
            return _pass(status)

        if status == UNAUTHORIZED:
            return _pass(status)
        return _fail(
            status,
            f"Expected {route} to require authentication "
            f"({_status_text(UNAUTHORIZED)}) for anonymous callers, but got {got}",
        )

    role = role_label(identity)
    permitted = isinstance(policy, Unauthenticated) or policy.allows(identity)

    if permitted:
        if status == FORBIDDEN:
            return _fail(
                status,
                f"Expected role {role} to be PERMITTED on {route}, but got {got}",
            )
        return _pass(status)

    if status == FORBIDDEN:
        return _pass(status)
    return _fail(
        status,
        f"Expected role {role} to be FORBIDDEN on {route} "
        f"({_status_text(FORBIDDEN)}), but got {got}",
    )
