"""
Path normalization.

Rewrites path-template placeholders into a fixed dummy value so the probe
gets a concrete path that routes to the templated endpoint.
"""

from __future__ import annotations

import re

# "{", one or more word characters, "}"
PLACEHOLDER_PATTERN = re.compile(r"\{\w+\}")

PLACEHOLDER_VALUE = "0"


def normalize_path(template: str) -> str:
    """
    Replace every placeholder in `template` with PLACEHOLDER_VALUE.

    Total and idempotent: a template without placeholders is returned
    unchanged, and so is an already-normalized path.

    Examples:
        >>> normalize_path("/user/{id}")
        '/user/0'
        >>> normalize_path("/org/{orgId}/user/{userId}")
        '/org/0/user/0'
        >>> normalize_path("/health")
        '/health'
    """
    return PLACEHOLDER_PATTERN.sub(PLACEHOLDER_VALUE, template)
