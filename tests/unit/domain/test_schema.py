"""Unit tests for object schemas and schema-filtered instances."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest

from widget_fuzz.domain import (
    Cardinality,
    ObjectSchema,
    PropertyDefinition,
    PropertyType,
    RelationshipDefinition,
    collect_references,
    is_of_schema,
    new_object_instance,
)


def _point_schema() -> ObjectSchema:
    return ObjectSchema(name="point", properties=(PropertyDefinition("x", "number"),))


def test_undeclared_keys_are_dropped_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="widget_fuzz.domain.schema"):
        instance = new_object_instance(_point_schema(), "p1", {"x": 1, "y": 2})

    assert dict(instance.properties) == {"x": 1}
    messages = [record.getMessage() for record in caplog.records]
    assert any("'y'" in message and "'point'" in message for message in messages)


def test_instances_are_immutable_and_updates_refilter() -> None:
    instance = new_object_instance(_point_schema(), "p1", {"x": 1})

    with pytest.raises(TypeError):
        instance.properties["x"] = 5  # type: ignore[index]

    updated = instance.with_properties(x=3, z=9)
    assert updated.get("x") == 3
    assert "z" not in updated.properties
    assert instance.get("x") == 1
    assert updated.schema is instance.schema


def test_property_type_aliases_and_validation() -> None:
    assert PropertyDefinition("owner", "actor").type is PropertyType.PERSONA
    assert PropertyDefinition("slot", "enumerated-id").type is PropertyType.ID

    with pytest.raises(ValueError, match="invalid value 'colour'"):
        PropertyDefinition("paint", "colour")
    with pytest.raises(ValueError, match="min_value must be <= max_value"):
        PropertyDefinition("n", "number", min_value=5, max_value=1)
    with pytest.raises(ValueError, match="min_length must be <= max_length"):
        PropertyDefinition("s", "string", min_length=4, max_length=2)


def test_duplicate_declared_keys_are_rejected() -> None:
    with pytest.raises(ValueError, match="duplicate property 'ref'"):
        ObjectSchema(
            name="dup",
            properties=(PropertyDefinition("ref", "string"),),
            relationships=(RelationshipDefinition("N:1", "ref", "other"),),
        )


def test_from_mapping_accepts_keyed_nested_schema() -> None:
    schema = ObjectSchema.from_mapping(
        {
            "name": "poll",
            "properties": [
                {
                    "name": "options",
                    "type": "object",
                    "array": True,
                    "schema": {"id": {"type": "id"}, "label": {"type": "string"}},
                }
            ],
            "relationships": [
                {"cardinality": "N:1", "property_name": "authorId", "target_schema": "author"}
            ],
        }
    )

    options = schema.property("options")
    assert options is not None
    assert options.schema is not None
    assert [item.name for item in options.schema] == ["id", "label"]
    relationship = schema.relationship("authorId")
    assert relationship is not None
    assert relationship.cardinality is Cardinality.MANY_TO_ONE
    assert not relationship.is_many
    assert schema.declared_keys_in_order() == ("options", "authorId")


def test_from_mapping_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="unexpected fields"):
        ObjectSchema.from_mapping({"name": "x", "colour": "red"})
    with pytest.raises(ValueError, match="expected one of"):
        RelationshipDefinition("3:4", "ref", "other")


def test_collect_references_walks_relationships_and_nested_references() -> None:
    schema = ObjectSchema(
        name="thread",
        properties=(
            PropertyDefinition("pinned", "reference", reference_schema="message"),
            PropertyDefinition(
                "links",
                "object",
                array=True,
                schema=(PropertyDefinition("target", "reference", reference_schema="message"),),
            ),
        ),
        relationships=(RelationshipDefinition("M:N", "members", "user"),),
    )
    instance = new_object_instance(
        schema,
        "t1",
        {
            "pinned": "m1",
            "links": [{"target": "m2"}, {"target": "m3"}],
            "members": ["u1", "u2"],
        },
    )

    assert collect_references(instance) == frozenset({"m1", "m2", "m3", "u1", "u2"})
    assert is_of_schema(instance, "thread")
    assert not is_of_schema(instance, "poll")
    assert not is_of_schema(None, "thread")


def test_to_dict_serializes_dates_as_utc_milliseconds() -> None:
    schema = ObjectSchema(name="stamp", properties=(PropertyDefinition("at", "date"),))
    instance = new_object_instance(
        schema, "s1", {"at": datetime(2024, 1, 2, 3, 4, 5, 678_900, tzinfo=UTC)}
    )
    assert instance.to_dict() == {
        "id": "s1",
        "schema": "stamp",
        "properties": {"at": "2024-01-02T03:04:05.678Z"},
    }
