"""
Route Spec Catalog

The declared mapping from route to access policy, authored as source-level
declarations by the calling test suite:

    CATALOG = RouteCatalog.of(
        RouteAuthSpec.of("GET", "/user/{id}", unauthenticated()),
        RouteAuthSpec.of("POST", "/user", any_role(Role.ADMIN)),
    )
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

from .errors import ConfigurationError
from .types import RouteAuthSpec, RouteKey


class RouteCatalog(BaseModel):
    """Immutable set of RouteAuthSpec keyed by RouteKey, in declaration order."""

    model_config = ConfigDict(frozen=True)

    specs: tuple[RouteAuthSpec, ...] = ()

    # Computed at load time for O(1) lookup
    _specs_by_key: dict[RouteKey, RouteAuthSpec] = PrivateAttr(default_factory=dict)

    @field_validator("specs")
    @classmethod
    def _unique_keys(cls, specs: tuple[RouteAuthSpec, ...]) -> tuple[RouteAuthSpec, ...]:
        counts = Counter(spec.key for spec in specs)
        duplicates = sorted((k for k, n in counts.items() if n > 1), key=RouteKey.sort_key)
        if duplicates:
            listed = ", ".join(str(k) for k in duplicates)
            raise ConfigurationError(f"Duplicate routes in catalog: {listed}")
        return specs

    def model_post_init(self, __context: Any) -> None:
        """Build the key index after initialization."""
        self._specs_by_key = {spec.key: spec for spec in self.specs}

    @classmethod
    def of(cls, *specs: RouteAuthSpec) -> "RouteCatalog":
        return cls(specs=tuple(specs))

    @classmethod
    def from_iterable(cls, specs: Iterable[RouteAuthSpec]) -> "RouteCatalog":
        return cls(specs=tuple(specs))

    def keys(self) -> frozenset[RouteKey]:
        return frozenset(self._specs_by_key)

    def get(self, key: RouteKey) -> RouteAuthSpec | None:
        return self._specs_by_key.get(key)

    def __iter__(self) -> Iterator[RouteAuthSpec]:  # type: ignore[override]
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def __contains__(self, key: object) -> bool:
        return key in self._specs_by_key
