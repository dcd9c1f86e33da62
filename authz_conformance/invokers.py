"""
Request invokers backed by httpx.

HttpxInvoker works with any httpx.Client, including
fastapi.testclient.TestClient for in-process dispatch. AsyncHttpxInvoker
drives an httpx.AsyncClient against a running service.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Union

import httpx

from .errors import ConfigurationError, ProbeTimeout, TransportError
from .probe import describe_request
from .types import ProbeRequest, Role, role_label

# A fixed token, or a callable producing one per request
CsrfToken = Union[str, Callable[[], str], None]


class _HeaderBuilder:
    """Credential and anti-forgery header construction shared by both invokers."""

    def __init__(
        self,
        role_headers: Mapping[Any, Mapping[str, str]] | None = None,
        csrf_token: CsrfToken = None,
        csrf_header: str = "X-CSRF-Token",
    ) -> None:
        self.role_headers = dict(role_headers or {})
        self.csrf_token = csrf_token
        self.csrf_header = csrf_header

    def credentials_for(self, role: Role) -> Mapping[str, str] | None:
        """Look up credentials by role, falling back to the role's label."""
        headers = self.role_headers.get(role)
        if headers is None:
            headers = self.role_headers.get(role_label(role))
        return headers

    def validate_roles(self, roles: Iterable[Role]) -> None:
        """
        Check every role has credentials.

        Raises:
            ConfigurationError: Listing the roles without credentials.
        """
        missing = [role_label(r) for r in roles if self.credentials_for(r) is None]
        if missing:
            raise ConfigurationError(f"No credentials configured for roles: {', '.join(missing)}")

    def headers_for(self, request: ProbeRequest) -> dict[str, str]:
        headers: dict[str, str] = {}

        if not request.is_anonymous:
            credentials = self.credentials_for(request.identity)
            if credentials is None:
                raise ConfigurationError(
                    f"No credentials configured for role {role_label(request.identity)}"
                )
            headers.update(credentials)

        if request.anti_forgery and self.csrf_token is not None:
            token = self.csrf_token() if callable(self.csrf_token) else self.csrf_token
            headers[self.csrf_header] = token

        return headers


class HttpxInvoker(_HeaderBuilder):
    """Synchronous invoker over an httpx.Client."""

    def __init__(
        self,
        client: httpx.Client,
        role_headers: Mapping[Any, Mapping[str, str]] | None = None,
        csrf_token: CsrfToken = None,
        csrf_header: str = "X-CSRF-Token",
    ) -> None:
        super().__init__(role_headers, csrf_token, csrf_header)
        self.client = client

    def invoke(self, request: ProbeRequest) -> int:
        headers = self.headers_for(request)
        try:
            response = self.client.request(request.method.value, request.path, headers=headers)
        except httpx.TimeoutException as e:
            raise ProbeTimeout(request, f"{describe_request(request)}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(
                request, f"{describe_request(request)}: transport error: {e}"
            ) from e
        return response.status_code


class AsyncHttpxInvoker(_HeaderBuilder):
    """Asynchronous invoker over an httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        role_headers: Mapping[Any, Mapping[str, str]] | None = None,
        csrf_token: CsrfToken = None,
        csrf_header: str = "X-CSRF-Token",
    ) -> None:
        super().__init__(role_headers, csrf_token, csrf_header)
        self.client = client

    async def invoke(self, request: ProbeRequest) -> int:
        headers = self.headers_for(request)
        try:
            response = await self.client.request(
                request.method.value, request.path, headers=headers
            )
        except httpx.TimeoutException as e:
            raise ProbeTimeout(request, f"{describe_request(request)}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(
                request, f"{describe_request(request)}: transport error: {e}"
            ) from e
        return response.status_code
