"""Declarative entity schemas and the recursive validation engine.

A schema lists its required fields and the primitive kind of each declared
property. An ``array`` property may carry an ``items`` schema, which makes
the schema composite: once an instance passes its own checks, every element
of that array is validated against ``items`` and each child error is
re-prefixed with the indexed parent field.

Error strings always end in a path: ``id is required at /stories[1]/`` or
``title must be of type string at /epics[0]/title``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from agile_planner.validators.type_validator import PRIMITIVE_KINDS, TypeValidator

PATH_MARKER = " at /"

_type_validator = TypeValidator()


@dataclass(frozen=True)
class PropertySpec:
    type: str
    items: Optional["EntitySchema"] = None
    description: Optional[str] = None

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()
        return schema


@dataclass(frozen=True)
class EntitySchema:
    name: str
    required: Tuple[str, ...] = ()
    properties: Dict[str, PropertySpec] = field(default_factory=dict)

    @property
    def children(self) -> List[Tuple[str, "EntitySchema"]]:
        return [
            (name, spec.items)
            for name, spec in self.properties.items()
            if spec.items is not None
        ]

    def to_json_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "required": list(self.required),
            "properties": {
                name: spec.to_json_schema() for name, spec in self.properties.items()
            },
        }

    @classmethod
    def from_json_schema(cls, name: str, schema: Mapping) -> "EntitySchema":
        properties: Dict[str, PropertySpec] = {}
        for prop_name, prop_schema in (schema.get("properties") or {}).items():
            kind = prop_schema.get("type", "string")
            if kind == "integer":
                kind = "number"
            items = None
            item_schema = prop_schema.get("items")
            if kind == "array" and isinstance(item_schema, Mapping) and item_schema.get("properties"):
                items = cls.from_json_schema(f"{name}.{prop_name}", item_schema)
            properties[prop_name] = PropertySpec(
                type=kind,
                items=items,
                description=prop_schema.get("description"),
            )
        return cls(
            name=name,
            required=tuple(schema.get("required") or ()),
            properties=properties,
        )


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.valid and self.errors:
            raise ValueError("A valid result cannot carry errors.")
        if not self.valid and not self.errors:
            raise ValueError("An invalid result must carry at least one error.")

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def from_errors(cls, errors: Iterable[str]) -> "ValidationResult":
        collected = tuple(errors)
        if not collected:
            return cls.ok()
        return cls(valid=False, errors=collected)

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True}
        return {"valid": False, "errors": list(self.errors)}


def missing_fields(instance: Any, schema: EntitySchema) -> List[str]:
    if not isinstance(instance, Mapping):
        return list(schema.required)
    return [name for name in schema.required if _type_validator.is_blank(instance.get(name))]


def validate_against_schema(instance: Any, schema: EntitySchema) -> ValidationResult:
    """Required-field check, then property-kind check. No recursion."""
    missing = missing_fields(instance, schema)
    if missing:
        return ValidationResult.from_errors(f"{name} is required{PATH_MARKER}" for name in missing)

    errors: List[str] = []
    for name, spec in schema.properties.items():
        if name not in instance:
            continue
        if spec.type not in PRIMITIVE_KINDS or not _type_validator.validate(instance[name], spec.type):
            errors.append(f"{name} must be of type {spec.type}{PATH_MARKER}{name}")
    return ValidationResult.from_errors(errors)


def prefix_errors(errors: Sequence[str], field_name: str, index: int) -> List[str]:
    prefix = f"{PATH_MARKER}{field_name}[{index}]/"
    prefixed = []
    for error in errors:
        if PATH_MARKER in error:
            prefixed.append(error.replace(PATH_MARKER, prefix, 1))
        else:
            prefixed.append(f"{error}{prefix}")
    return prefixed


def validate_entity(instance: Any, schema: EntitySchema) -> ValidationResult:
    base = validate_against_schema(instance, schema)
    if not base.valid:
        return base

    errors: List[str] = []
    for field_name, child_schema in schema.children:
        elements = instance.get(field_name)
        if not isinstance(elements, list):
            continue
        for index, element in enumerate(elements):
            child = validate_entity(element, child_schema)
            if not child.valid:
                errors.extend(prefix_errors(child.errors, field_name, index))
    return ValidationResult.from_errors(errors)
