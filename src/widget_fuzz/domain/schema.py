"""Typed object schemas and immutable, schema-filtered object instances."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Final, NoReturn

logger = logging.getLogger(__name__)

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]{0,63}$")


class PropertyType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"
    PERSONA = "persona"
    ID = "id"
    REFERENCE = "reference"


_PROPERTY_TYPE_ALIASES: Final[dict[str, PropertyType]] = {
    "enumerated-id": PropertyType.ID,
    "actor": PropertyType.PERSONA,
}


class Cardinality(StrEnum):
    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "M:N"


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_name(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not _NAME_RE.fullmatch(normalized):
        _fail(path, f"invalid name {value!r}")
    return normalized


def _as_optional_number(value: object, path: str) -> float | int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        _fail(path, "must be finite")
    return value


def _as_optional_length(value: object, path: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if value < 0:
        _fail(path, "must be >= 0")
    return value


def _as_property_type(value: object, path: str) -> PropertyType:
    if isinstance(value, PropertyType):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    normalized = value.strip()
    alias = _PROPERTY_TYPE_ALIASES.get(normalized)
    if alias is not None:
        return alias
    try:
        return PropertyType(normalized)
    except ValueError:
        allowed = ", ".join(sorted([*(item.value for item in PropertyType), *_PROPERTY_TYPE_ALIASES]))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    for key in value:
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
    return value


def _reject_unknown(data: Mapping[str, object], allowed: set[str], path: str) -> None:
    unknown = sorted(key for key in data if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")


@dataclass(frozen=True, slots=True)
class PropertyDefinition:
    """One field of a schema; array bounds constrain element count."""

    name: str
    type: PropertyType
    array: bool = False
    required: bool = False
    min_value: float | int | None = None
    max_value: float | int | None = None
    min_length: int | None = None
    max_length: int | None = None
    schema: tuple[PropertyDefinition, ...] | None = None
    reference_schema: str | None = None
    default: object = field(default=None, compare=False, hash=False)

    def __post_init__(self) -> None:
        path = f"PropertyDefinition({self.name!r})"
        object.__setattr__(self, "name", _as_name(self.name, f"{path}.name"))
        object.__setattr__(self, "type", _as_property_type(self.type, f"{path}.type"))
        if not isinstance(self.array, bool):
            _fail(f"{path}.array", "expected boolean")
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            _fail(path, "min_value must be <= max_value")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            _fail(path, "min_length must be <= max_length")
        if self.schema is not None:
            object.__setattr__(self, "schema", tuple(self.schema))

    @classmethod
    def from_mapping(cls, data: Mapping[str, object], *, path: str = "property") -> PropertyDefinition:
        parsed = _as_mapping(data, path)
        _reject_unknown(
            parsed,
            {
                "name",
                "type",
                "array",
                "required",
                "min_value",
                "max_value",
                "min_length",
                "max_length",
                "schema",
                "reference_schema",
                "default",
            },
            path,
        )
        if "name" not in parsed or "type" not in parsed:
            _fail(path, "missing required fields: ['name', 'type']")

        nested: tuple[PropertyDefinition, ...] | None = None
        raw_nested = parsed.get("schema")
        if raw_nested is not None:
            nested = tuple(_iter_nested_properties(raw_nested, f"{path}.schema"))

        reference_schema = parsed.get("reference_schema")
        return cls(
            name=_as_name(parsed["name"], f"{path}.name"),
            type=_as_property_type(parsed["type"], f"{path}.type"),
            array=bool(parsed.get("array", False)),
            required=bool(parsed.get("required", False)),
            min_value=_as_optional_number(parsed.get("min_value"), f"{path}.min_value"),
            max_value=_as_optional_number(parsed.get("max_value"), f"{path}.max_value"),
            min_length=_as_optional_length(parsed.get("min_length"), f"{path}.min_length"),
            max_length=_as_optional_length(parsed.get("max_length"), f"{path}.max_length"),
            schema=nested,
            reference_schema=(
                _as_name(reference_schema, f"{path}.reference_schema")
                if reference_schema is not None
                else None
            ),
            default=parsed.get("default"),
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "name": self.name,
            "type": self.type.value,
            "array": self.array,
        }
        if self.required:
            payload["required"] = True
        for key in ("min_value", "max_value", "min_length", "max_length", "reference_schema"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.schema is not None:
            payload["schema"] = [item.to_dict() for item in self.schema]
        if self.default is not None:
            payload["default"] = to_json_value(self.default)
        return payload


def _iter_nested_properties(raw: object, path: str) -> Iterable[PropertyDefinition]:
    if isinstance(raw, Mapping):
        for key in raw:
            item = _as_mapping(raw[key], f"{path}.{key}")
            merged = dict(item)
            merged.setdefault("name", key)
            yield PropertyDefinition.from_mapping(merged, path=f"{path}.{key}")
        return
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
        for index, item in enumerate(raw):
            yield PropertyDefinition.from_mapping(
                _as_mapping(item, f"{path}[{index}]"), path=f"{path}[{index}]"
            )
        return
    _fail(path, f"expected object or array, got {type(raw).__name__}")


@dataclass(frozen=True, slots=True)
class RelationshipDefinition:
    """Foreign reference held in ``property_name`` pointing at ``target_schema``."""

    cardinality: Cardinality
    property_name: str
    target_schema: str
    optional: bool = False

    def __post_init__(self) -> None:
        path = f"RelationshipDefinition({self.property_name!r})"
        if not isinstance(self.cardinality, Cardinality):
            try:
                object.__setattr__(self, "cardinality", Cardinality(str(self.cardinality)))
            except ValueError:
                allowed = ", ".join(item.value for item in Cardinality)
                _fail(f"{path}.cardinality", f"expected one of: {allowed}")
        object.__setattr__(
            self, "property_name", _as_name(self.property_name, f"{path}.property_name")
        )
        object.__setattr__(
            self, "target_schema", _as_name(self.target_schema, f"{path}.target_schema")
        )

    @property
    def is_many(self) -> bool:
        return self.cardinality in (Cardinality.ONE_TO_MANY, Cardinality.MANY_TO_MANY)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, object], *, path: str = "relationship"
    ) -> RelationshipDefinition:
        parsed = _as_mapping(data, path)
        _reject_unknown(parsed, {"cardinality", "property_name", "target_schema", "optional"}, path)
        missing = sorted(
            key for key in ("cardinality", "property_name", "target_schema") if key not in parsed
        )
        if missing:
            _fail(path, f"missing required fields: {missing}")
        return cls(
            cardinality=parsed["cardinality"],  # type: ignore[arg-type]
            property_name=_as_name(parsed["property_name"], f"{path}.property_name"),
            target_schema=_as_name(parsed["target_schema"], f"{path}.target_schema"),
            optional=bool(parsed.get("optional", False)),
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "cardinality": self.cardinality.value,
            "property_name": self.property_name,
            "target_schema": self.target_schema,
            "optional": self.optional,
        }


@dataclass(frozen=True, slots=True)
class ObjectSchema:
    """Immutable named collection of property and relationship definitions."""

    name: str
    properties: tuple[PropertyDefinition, ...] = ()
    relationships: tuple[RelationshipDefinition, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _as_name(self.name, "ObjectSchema.name"))
        object.__setattr__(self, "properties", tuple(self.properties))
        object.__setattr__(self, "relationships", tuple(self.relationships))

        seen: set[str] = set()
        for key in self.declared_keys_in_order():
            if key in seen:
                _fail(f"ObjectSchema({self.name!r})", f"duplicate property {key!r}")
            seen.add(key)

    def declared_keys_in_order(self) -> tuple[str, ...]:
        return (
            *(prop.name for prop in self.properties),
            *(rel.property_name for rel in self.relationships),
        )

    @property
    def declared_keys(self) -> frozenset[str]:
        return frozenset(self.declared_keys_in_order())

    def property(self, name: str) -> PropertyDefinition | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def relationship(self, property_name: str) -> RelationshipDefinition | None:
        for rel in self.relationships:
            if rel.property_name == property_name:
                return rel
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, object], *, path: str = "schema") -> ObjectSchema:
        parsed = _as_mapping(data, path)
        _reject_unknown(parsed, {"name", "properties", "relationships"}, path)
        if "name" not in parsed:
            _fail(path, "missing required fields: ['name']")
        raw_properties = parsed.get("properties") or []
        raw_relationships = parsed.get("relationships") or []
        if not isinstance(raw_relationships, Sequence) or isinstance(raw_relationships, str):
            _fail(f"{path}.relationships", "expected array")
        return cls(
            name=_as_name(parsed["name"], f"{path}.name"),
            properties=tuple(_iter_nested_properties(raw_properties, f"{path}.properties")),
            relationships=tuple(
                RelationshipDefinition.from_mapping(
                    _as_mapping(item, f"{path}.relationships[{index}]"),
                    path=f"{path}.relationships[{index}]",
                )
                for index, item in enumerate(raw_relationships)
            ),
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "name": self.name,
            "properties": [prop.to_dict() for prop in self.properties],
            "relationships": [rel.to_dict() for rel in self.relationships],
        }


@dataclass(frozen=True, slots=True)
class ObjectInstance:
    """Schema-conforming value object; the schema is shared, never copied."""

    id: str
    schema: ObjectSchema
    properties: Mapping[str, object] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            _fail("ObjectInstance.id", "must be a non-empty string")
        if not isinstance(self.schema, ObjectSchema):
            _fail("ObjectInstance.schema", f"expected ObjectSchema, got {type(self.schema).__name__}")
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def get(self, key: str, default: object = None) -> object:
        return self.properties.get(key, default)

    def with_properties(self, **changes: object) -> ObjectInstance:
        """Return a new instance with ``changes`` applied (filtered like construction)."""

        merged = dict(self.properties)
        merged.update(changes)
        return new_object_instance(self.schema, self.id, merged)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "schema": self.schema.name,
            "properties": {
                key: to_json_value(self.properties[key]) for key in sorted(self.properties)
            },
        }


def new_object_instance(
    schema: ObjectSchema,
    instance_id: str,
    entries: Mapping[str, object],
) -> ObjectInstance:
    """Build an instance keeping only keys declared on ``schema``.

    Undeclared keys are dropped and a warning is logged for each.
    """

    declared = schema.declared_keys
    properties: dict[str, object] = {}
    for key, value in entries.items():
        if key in declared:
            properties[key] = value
        else:
            logger.warning(
                "property %r is not defined in schema %r; dropped",
                key,
                schema.name,
                extra={"schema_name": schema.name, "property_name": key},
            )
    return ObjectInstance(id=instance_id, schema=schema, properties=properties)


def is_of_schema(instance: ObjectInstance | None, schema_name: str) -> bool:
    return instance is not None and instance.schema.name == schema_name


def collect_references(instance: ObjectInstance) -> frozenset[str]:
    """Return every entity id ``instance`` points at through relationships or references."""

    refs: set[str] = set()
    for rel in instance.schema.relationships:
        _collect_id_values(instance.properties.get(rel.property_name), refs)
    for prop in instance.schema.properties:
        _collect_from_property(prop, instance.properties.get(prop.name), refs)
    return frozenset(refs)


def _collect_id_values(value: object, out: set[str]) -> None:
    if isinstance(value, str) and value:
        out.add(value)
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item:
                out.add(item)


def _collect_from_property(prop: PropertyDefinition, value: object, out: set[str]) -> None:
    if value is None:
        return
    if prop.type is PropertyType.REFERENCE:
        _collect_id_values(value, out)
        return
    if prop.type is not PropertyType.OBJECT or not prop.schema:
        return
    items = value if prop.array and isinstance(value, (list, tuple)) else (value,)
    for item in items:
        if not isinstance(item, Mapping):
            continue
        for sub_prop in prop.schema:
            _collect_from_property(sub_prop, item.get(sub_prop.name), out)


def to_json_value(value: object) -> JSONValue:
    """Normalize instance values (datetimes, tuples, nested instances) to JSON."""

    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, datetime):
        normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return normalized.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, ObjectInstance):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {str(key): to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    return repr(value)


__all__ = [
    "Cardinality",
    "JSONValue",
    "ObjectInstance",
    "ObjectSchema",
    "PropertyDefinition",
    "PropertyType",
    "RelationshipDefinition",
    "collect_references",
    "is_of_schema",
    "new_object_instance",
    "to_json_value",
]
