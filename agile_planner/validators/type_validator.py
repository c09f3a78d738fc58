from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Tuple

PRIMITIVE_KINDS: Tuple[str, ...] = ("string", "number", "boolean", "array", "object")


class TypeValidator:
    """Checks one value against one of the five primitive kinds."""

    def validate(self, value: Any, kind: str) -> bool:
        if kind == "string":
            return isinstance(value, str)
        if kind == "number":
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if kind == "boolean":
            return isinstance(value, bool)
        if kind == "array":
            return isinstance(value, list)
        if kind == "object":
            return isinstance(value, Mapping)
        return False

    def is_blank(self, value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())
