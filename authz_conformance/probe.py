"""
Authorization Probe

Builds one request per (route spec, identity), hands it to the request
invoker and returns the raw status code. No state is retained between
probes and nothing is retried: a transport failure is reported as such.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Callable, Optional, Protocol, Union

from .errors import ConfigurationError, ConformanceError, ProbeTimeout, TransportError
from .normalize import normalize_path
from .types import HttpMethod, ProbeRequest, Role, RouteAuthSpec, role_label

logger = logging.getLogger(__name__)


class RequestInvoker(Protocol):
    """
    Issues a probe request against the service under test.

    `invoke` may be a plain or an async method. For requests with
    `anti_forgery` set, the invoker must satisfy the service's anti-forgery
    requirement so only authorization semantics are measured.
    """

    def invoke(self, request: ProbeRequest) -> Union[int, Awaitable[int]]:
        ...


# =============================================================================
# REQUEST CONSTRUCTION
# =============================================================================

RequestRule = Callable[[HttpMethod, str, Optional[Role]], ProbeRequest]


def _plain(method: HttpMethod, path: str, identity: Role | None) -> ProbeRequest:
    return ProbeRequest(method=method, path=path, identity=identity)


def _with_anti_forgery(method: HttpMethod, path: str, identity: Role | None) -> ProbeRequest:
    return ProbeRequest(method=method, path=path, identity=identity, anti_forgery=True)


# One rule per supported method. A method missing here is a setup error.
REQUEST_RULES: dict[HttpMethod, RequestRule] = {
    HttpMethod.GET: _plain,
    HttpMethod.POST: _with_anti_forgery,
    HttpMethod.PUT: _with_anti_forgery,
    HttpMethod.PATCH: _with_anti_forgery,
    HttpMethod.DELETE: _with_anti_forgery,
}


def build_request(spec: RouteAuthSpec, identity: Role | None) -> ProbeRequest:
    """
    Construct the probe request for `spec` under `identity`.

    Raises:
        ConfigurationError: If the spec's method has no construction rule.
    """
    method = HttpMethod.parse(spec.key.method)
    rule = REQUEST_RULES.get(method)
    if rule is None:
        raise ConfigurationError(f"No request construction rule for method {method.value}")
    return rule(method, normalize_path(spec.path), identity)


def describe_request(request: ProbeRequest) -> str:
    return f"{request.method.value} {request.path} as {role_label(request.identity)}"


# =============================================================================
# PROBE
# =============================================================================

# Sync invokers run here, not on the default executor, which asyncio.run
# joins on shutdown even when a probe has passed its deadline.
_INVOKER_POOL = ThreadPoolExecutor(max_workers=32, thread_name_prefix="authz-probe")


async def _invoke(request: ProbeRequest, invoker: RequestInvoker) -> int:
    try:
        if inspect.iscoroutinefunction(invoker.invoke):
            return await invoker.invoke(request)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_INVOKER_POOL, invoker.invoke, request)
    except ConformanceError:
        raise
    except (TimeoutError, asyncio.TimeoutError) as e:
        raise ProbeTimeout(
            request,
            f"{describe_request(request)}: timed out: {type(e).__name__}: {e}",
        ) from e
    except Exception as e:
        raise TransportError(
            request,
            f"{describe_request(request)}: transport error: {type(e).__name__}: {e}",
        ) from e


async def send(
    request: ProbeRequest,
    invoker: RequestInvoker,
    timeout: float | None = None,
) -> int:
    """
    Hand `request` to `invoker` and return the status code.

    Synchronous invokers run in a worker thread so a timeout can fail this
    probe without blocking others. A worker still busy past the deadline
    is abandoned, not joined.

    Raises:
        ProbeTimeout: If no status arrives within `timeout` seconds, or the
            invoker itself times out.
        TransportError: If the invoker raises; the original is the cause.
    """
    try:
        status = await asyncio.wait_for(_invoke(request, invoker), timeout)
    except asyncio.TimeoutError:
        # Invoker errors are already wrapped, so only the deadline lands here.
        raise ProbeTimeout(
            request,
            f"{describe_request(request)}: no response within {timeout}s",
        ) from None

    logger.debug(f"{describe_request(request)} -> {status}")
    return int(status)


async def probe(
    spec: RouteAuthSpec,
    identity: Role | None,
    invoker: RequestInvoker,
    timeout: float | None = None,
) -> int:
    """Probe `spec` under `identity` and return the raw status code."""
    return await send(build_request(spec, identity), invoker, timeout)
