from __future__ import annotations

import sys
from collections.abc import Mapping
from typing import Any, Dict, Optional

from agile_planner.errors import ConfigurationError
from agile_planner.validators.entities import ENTITY_SCHEMAS
from agile_planner.validators.schema import EntitySchema, ValidationResult, validate_entity

KIND_ALIASES = {
    "user_story": "userStory",
    "story": "userStory",
}


class EntityValidator:
    def __init__(self, schema: EntitySchema) -> None:
        self.schema = schema

    def validate(self, instance: Any) -> ValidationResult:
        return validate_entity(instance, self.schema)


def unwrap_response(data: Any) -> Any:
    if isinstance(data, Mapping) and data.get("success") is True and "result" in data:
        print("[validate] unwrapping {success, result} envelope", file=sys.stderr)
        return data["result"]
    return data


class ValidatorFactory:
    """Builds one validator per entity kind on first use and keeps it."""

    def __init__(self, schemas: Optional[Dict[str, EntitySchema]] = None) -> None:
        self._schemas = dict(schemas if schemas is not None else ENTITY_SCHEMAS)
        self._validators: Dict[str, EntityValidator] = {}

    @property
    def kinds(self) -> list:
        return sorted(self._schemas)

    def get(self, kind: str) -> EntityValidator:
        key = KIND_ALIASES.get(kind, kind)
        validator = self._validators.get(key)
        if validator is None:
            schema = self._schemas.get(key)
            if schema is None:
                raise ConfigurationError(
                    f"Unsupported validator kind: {kind!r}. Known kinds: {', '.join(self.kinds)}"
                )
            validator = EntityValidator(schema)
            self._validators[key] = validator
        return validator

    def schema_for(self, kind: str) -> EntitySchema:
        return self.get(kind).schema

    def validate(self, data: Any, kind: str) -> ValidationResult:
        validator = self.get(kind)
        return validator.validate(unwrap_response(data))


validators = ValidatorFactory()
