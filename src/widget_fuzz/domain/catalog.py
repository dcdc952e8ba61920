"""Name-unique schema catalog, loadable from YAML documents."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from importlib import resources
from pathlib import Path

import yaml

from widget_fuzz.constants import SCHEMA_CATALOG_VERSION
from widget_fuzz.domain.schema import JSONValue, ObjectSchema, PropertyDefinition, PropertyType


class SchemaCatalogError(ValueError):
    """Raised when a schema catalog is inconsistent or cannot be parsed."""


class SchemaCatalog:
    """Ordered, immutable set of schemas with globally unique names.

    Relationship targets and ``reference`` property targets must resolve to a
    schema in the same catalog.
    """

    __slots__ = ("_schemas",)

    def __init__(self, schemas: Iterable[ObjectSchema]) -> None:
        ordered: dict[str, ObjectSchema] = {}
        for schema in schemas:
            if not isinstance(schema, ObjectSchema):
                raise SchemaCatalogError(
                    f"catalog entries must be ObjectSchema, got {type(schema).__name__}"
                )
            if schema.name in ordered:
                raise SchemaCatalogError(f"duplicate schema name {schema.name!r}")
            ordered[schema.name] = schema
        self._schemas = ordered
        self._check_targets()

    def _check_targets(self) -> None:
        for schema in self._schemas.values():
            for rel in schema.relationships:
                if rel.target_schema not in self._schemas:
                    raise SchemaCatalogError(
                        f"schema {schema.name!r}: relationship {rel.property_name!r} targets "
                        f"unknown schema {rel.target_schema!r}"
                    )
            for target in _reference_targets(schema.properties):
                if target not in self._schemas:
                    raise SchemaCatalogError(
                        f"schema {schema.name!r}: reference targets unknown schema {target!r}"
                    )

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[ObjectSchema]:
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    def names(self) -> tuple[str, ...]:
        return tuple(self._schemas)

    def get(self, name: str) -> ObjectSchema:
        try:
            return self._schemas[name]
        except KeyError as exc:
            raise SchemaCatalogError(f"unknown schema {name!r}") from exc

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "version": SCHEMA_CATALOG_VERSION,
            "schemas": [schema.to_dict() for schema in self._schemas.values()],
        }

    @classmethod
    def from_mapping(cls, data: object, *, source: str = "<mapping>") -> SchemaCatalog:
        if not isinstance(data, Mapping):
            raise SchemaCatalogError(f"{source}: catalog root must be a mapping")
        version = data.get("version", SCHEMA_CATALOG_VERSION)
        if version != SCHEMA_CATALOG_VERSION:
            raise SchemaCatalogError(
                f"{source}: unsupported catalog version {version!r}; "
                f"expected {SCHEMA_CATALOG_VERSION}"
            )
        raw_schemas = data.get("schemas")
        if not isinstance(raw_schemas, list):
            raise SchemaCatalogError(f"{source}: 'schemas' must be a list")

        schemas: list[ObjectSchema] = []
        for index, item in enumerate(raw_schemas):
            try:
                schemas.append(ObjectSchema.from_mapping(item, path=f"schemas[{index}]"))
            except ValueError as exc:
                if isinstance(exc, SchemaCatalogError):
                    raise
                raise SchemaCatalogError(f"{source}: {exc}") from exc
        return cls(schemas)

    @classmethod
    def from_yaml(cls, text: str, *, source: str = "<yaml>") -> SchemaCatalog:
        try:
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SchemaCatalogError(f"{source}: invalid YAML: {exc}") from exc
        return cls.from_mapping(parsed, source=source)

    @classmethod
    def load(cls, path: str | Path) -> SchemaCatalog:
        resolved = Path(path)
        try:
            text = resolved.read_text(encoding="utf-8")
        except OSError as exc:
            raise SchemaCatalogError(f"unable to read schema catalog {resolved}: {exc}") from exc
        return cls.from_yaml(text, source=str(resolved))

    @classmethod
    def load_resource(cls, package: str, resource: str) -> SchemaCatalog:
        """Load a catalog shipped as package data."""

        text = resources.files(package).joinpath(resource).read_text(encoding="utf-8")
        return cls.from_yaml(text, source=f"{package}/{resource}")


def _reference_targets(properties: Iterable[PropertyDefinition]) -> Iterator[str]:
    for prop in properties:
        if prop.type is PropertyType.REFERENCE and prop.reference_schema is not None:
            yield prop.reference_schema
        if prop.schema:
            yield from _reference_targets(prop.schema)


__all__ = ["SchemaCatalog", "SchemaCatalogError"]
