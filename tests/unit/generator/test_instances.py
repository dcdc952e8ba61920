"""Unit tests for schema-driven random instances."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from widget_fuzz.domain import ObjectSchema, PropertyDefinition
from widget_fuzz.domains.poll import load_poll_schemas
from widget_fuzz.generator.instances import random_object_instance
from widget_fuzz.generator.prng import RandomStream

NOW = datetime(2024, 5, 1, tzinfo=UTC)
ACTORS = ("alice", "bob", "carol")


@settings(max_examples=60, deadline=None)
@given(st.integers(min_value=0, max_value=2**32 - 1))
def test_generated_poll_stays_within_declared_keys_and_bounds(seed: int) -> None:
    schema = load_poll_schemas().get("poll")
    instance = random_object_instance(
        schema,
        "poll-1",
        rng=RandomStream.from_seed(seed),
        actor_pool=ACTORS,
        references={"authorId": "alice"},
        now=NOW,
    )

    assert set(instance.properties) <= schema.declared_keys
    assert instance.get("authorId") == "alice"

    prompt = instance.get("prompt")
    assert isinstance(prompt, str)
    assert 2 <= len(prompt.split()) <= 8

    options = instance.get("options")
    assert isinstance(options, list)
    assert 2 <= len(options) <= 4
    for option in options:
        assert set(option) == {"id", "label"}
        assert 1 <= len(option["label"].split()) <= 3


@settings(max_examples=60, deadline=None)
@given(st.integers(min_value=0, max_value=2**32 - 1))
def test_generated_vote_respects_numeric_bounds(seed: int) -> None:
    schema = load_poll_schemas().get("vote")
    instance = random_object_instance(
        schema,
        "vote-1",
        rng=RandomStream.from_seed(seed),
        actor_pool=ACTORS,
        references={"pollId": "poll-1", "authorId": "bob"},
        now=NOW,
    )

    assert set(instance.properties) == {"optionIndex", "pollId", "authorId"}
    assert 0 <= instance.get("optionIndex") <= 3  # type: ignore[operator]


def test_scalar_types_and_dates() -> None:
    schema = ObjectSchema(
        name="sample",
        properties=(
            PropertyDefinition("flag", "boolean"),
            PropertyDefinition("when", "date", min_value=0, max_value=1_000),
            PropertyDefinition("who", "persona"),
            PropertyDefinition("token", "id"),
            PropertyDefinition("tags", "string", array=True, min_length=3, max_length=3),
        ),
    )
    instance = random_object_instance(
        schema, "s-1", rng=RandomStream.from_seed(4), actor_pool=ACTORS, now=NOW
    )

    assert isinstance(instance.get("flag"), bool)
    when = instance.get("when")
    assert isinstance(when, datetime)
    assert (NOW - when).total_seconds() <= 1.0
    assert instance.get("who") in ACTORS
    assert isinstance(instance.get("token"), str)
    tags = instance.get("tags")
    assert isinstance(tags, list)
    assert len(tags) == 3


def test_object_without_nested_schema_yields_empty_mapping() -> None:
    schema = ObjectSchema(name="holder", properties=(PropertyDefinition("blob", "object"),))
    instance = random_object_instance(
        schema, "h-1", rng=RandomStream.from_seed(1), actor_pool=ACTORS, now=NOW
    )
    assert instance.get("blob") == {}


def test_unresolved_reference_becomes_none(caplog: pytest.LogCaptureFixture) -> None:
    schema = ObjectSchema(
        name="comment",
        properties=(PropertyDefinition("target", "reference", reference_schema="poll"),),
    )
    with caplog.at_level(logging.WARNING):
        instance = random_object_instance(
            schema, "c-1", rng=RandomStream.from_seed(1), actor_pool=ACTORS, now=NOW
        )
    assert instance.get("target") is None
    assert any("reference property" in record.getMessage() for record in caplog.records)

    linked = random_object_instance(
        schema,
        "c-2",
        rng=RandomStream.from_seed(1),
        actor_pool=ACTORS,
        known_entities={"poll": ["poll-9"]},
        now=NOW,
    )
    assert linked.get("target") == "poll-9"


def test_relationships_are_filled_from_known_entities() -> None:
    schema = load_poll_schemas().get("vote")
    instance = random_object_instance(
        schema,
        "vote-2",
        rng=RandomStream.from_seed(2),
        actor_pool=ACTORS,
        known_entities={"poll": ["poll-a"], "author": ["alice"]},
        now=NOW,
    )
    assert instance.get("pollId") == "poll-a"
    assert instance.get("authorId") == "alice"


def test_same_seed_generates_same_instance() -> None:
    schema = load_poll_schemas().get("poll")

    def build() -> dict[str, object]:
        return random_object_instance(
            schema, "p", rng=RandomStream.from_seed(77), actor_pool=ACTORS, now=NOW
        ).to_dict()

    assert build() == build()
