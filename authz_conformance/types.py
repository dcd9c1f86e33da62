"""
Authorization Conformance Types

Access policies, route keys, route specs and the value types exchanged
between the coverage analyzer, the probe and the decision table.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Hashable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError, CoverageFailure

# A role is any hashable identity classification; a str-valued Enum is the
# usual form, since iterating the Enum class yields the complete role set.
Role = Hashable


def role_label(role: Role | None) -> str:
    """Human-readable label for a role, or "anonymous" for no identity."""
    if role is None:
        return "anonymous"
    if isinstance(role, Enum):
        return role.name
    return str(role)


# =============================================================================
# HTTP METHODS
# =============================================================================

class HttpMethod(str, Enum):
    """HTTP methods the probe knows how to construct requests for."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def is_state_mutating(self) -> bool:
        return self is not HttpMethod.GET

    @classmethod
    def parse(cls, name: str) -> "HttpMethod":
        """Parse a method name, raising ConfigurationError when unsupported."""
        try:
            return cls(name.upper())
        except ValueError:
            supported = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f"Unsupported HTTP method {name!r} (supported: {supported})"
            ) from None


# =============================================================================
# ACCESS POLICY (tagged variant)
# =============================================================================

class Unauthenticated(BaseModel):
    """No identity required. Never means "identity forbidden"."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unauthenticated"] = "unauthenticated"

    def describe(self) -> str:
        return "unauthenticated"


class AnyRole(BaseModel):
    """Access granted to an identity presenting at least one of `roles`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["any_role"] = "any_role"
    roles: frozenset[Any]

    @field_validator("roles", mode="before")
    @classmethod
    def _non_empty(cls, value: Any) -> Any:
        if isinstance(value, str):
            raise ConfigurationError(
                f"AnyRole roles must be a collection of roles, not the string {value!r}"
            )
        # An empty set means "no one allowed", which is a declaration error.
        if value is None or len(value) == 0:
            raise ConfigurationError("AnyRole requires at least one role")
        return frozenset(value)

    def allows(self, role: Role) -> bool:
        return role in self.roles

    def describe(self) -> str:
        labels = sorted(role_label(r) for r in self.roles)
        return f"any of [{', '.join(labels)}]"


AccessPolicy = Annotated[Union[Unauthenticated, AnyRole], Field(discriminator="kind")]


def unauthenticated() -> Unauthenticated:
    return Unauthenticated()


def any_role(*roles: Role) -> AnyRole:
    return AnyRole(roles=frozenset(roles))


# =============================================================================
# ROUTES
# =============================================================================

class RouteKey(BaseModel):
    """
    An (HTTP method, path template) pair.

    Equality is exact on the upper-cased method and the raw template;
    `/user/{id}` and `/user/{userId}` are different keys.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    path: str

    @field_validator("method")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def parse(cls, text: str) -> "RouteKey":
        """Parse "METHOD /path" into a RouteKey."""
        parts = text.split()
        if len(parts) != 2 or not parts[1].startswith("/"):
            raise ConfigurationError(f"Route must look like 'GET /path', got {text!r}")
        return cls(method=parts[0], path=parts[1])

    def sort_key(self) -> tuple[str, str]:
        return (self.path, self.method)

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


class RouteAuthSpec(BaseModel):
    """The declared access policy for one route."""

    model_config = ConfigDict(frozen=True)

    key: RouteKey
    access: AccessPolicy

    @field_validator("key")
    @classmethod
    def _supported_method(cls, value: RouteKey) -> RouteKey:
        HttpMethod.parse(value.method)
        return value

    @classmethod
    def of(cls, method: str, path: str, access: Union[Unauthenticated, AnyRole]) -> "RouteAuthSpec":
        return cls(key=RouteKey(method=method, path=path), access=access)

    @property
    def method(self) -> HttpMethod:
        return HttpMethod(self.key.method)

    @property
    def path(self) -> str:
        return self.key.path


# =============================================================================
# PROBE REQUEST & OUTCOME
# =============================================================================

class ProbeRequest(BaseModel):
    """A fully constructed probe request handed to a request invoker."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    path: str
    identity: Optional[Any] = None  # None means anonymous
    anti_forgery: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.identity is None


class Outcome(BaseModel):
    """Pass/fail verdict from the decision table."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    status: Optional[int] = None
    message: Optional[str] = None


# =============================================================================
# COVERAGE REPORT
# =============================================================================

class CoverageReport(BaseModel):
    """
    Drift between the live registry and the declared catalog.

    untested:    routes the service serves that have no spec
    nonexistent: specs whose route the service does not serve
    """

    model_config = ConfigDict(frozen=True)

    untested: frozenset[RouteKey] = frozenset()
    nonexistent: frozenset[RouteKey] = frozenset()

    @property
    def is_clean(self) -> bool:
        return not self.untested and not self.nonexistent

    def describe(self) -> str:
        if self.is_clean:
            return "Catalog and route registry are in sync"

        lines = ["Catalog and route registry have drifted."]
        lines.append(f"Untested routes ({len(self.untested)}), served but not declared:")
        lines.extend(f"  {key}" for key in sorted(self.untested, key=RouteKey.sort_key))
        lines.append(f"Nonexistent routes ({len(self.nonexistent)}), declared but not served:")
        lines.extend(f"  {key}" for key in sorted(self.nonexistent, key=RouteKey.sort_key))
        return "\n".join(lines)

    def raise_for_drift(self) -> None:
        """Raise CoverageFailure listing both sets when either is non-empty."""
        if not self.is_clean:
            raise CoverageFailure(self)


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConformanceConfig(BaseModel):
    """Configuration for a conformance run."""

    base_url: Optional[str] = None
    timeout_seconds: float = 10.0
    concurrency: int = 8

    # Role label -> headers that authenticate as that role
    role_headers: dict[str, dict[str, str]] = Field(default_factory=dict)

    # Anti-forgery settings for state-mutating requests
    csrf_header: str = "X-CSRF-Token"
    csrf_token: Optional[str] = None

    # Routes exempt from the "nonexistent" check, as "METHOD /path"
    whitelist: list[str] = Field(default_factory=list)

    def whitelist_keys(self) -> frozenset[RouteKey]:
        return frozenset(RouteKey.parse(entry) for entry in self.whitelist)
