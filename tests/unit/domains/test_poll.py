"""Unit tests for the poll reference domain."""

from __future__ import annotations

from datetime import datetime

import pytest

from widget_fuzz.domain import ActionLogEntry, SchemaCatalog, new_object_instance
from widget_fuzz.domains.poll import (
    ADD_VOTE,
    CREATE_POLL,
    DELETE_VOTE,
    PollPayload,
    PollSeeder,
    VotePayload,
    build_poll_catalog,
    interpret,
    tally,
)
from widget_fuzz.generator import GenerationContext, RandomStream
from widget_fuzz.persistence import InMemoryEventLog


def _entry(event) -> ActionLogEntry:
    entry = PollSeeder().to_log_entry(event)
    assert entry is not None
    return entry


def _context(seed: int, now: datetime, **known: list[str]) -> GenerationContext:
    return GenerationContext(
        rng=RandomStream.from_seed(seed),
        actor_pool=("alice", "bob"),
        now=now,
        known_entities_by_kind=dict(known),
    )


def test_interpret_decodes_by_schema(poll_events, poll_schemas: SchemaCatalog) -> None:
    poll = interpret(poll_events.create_poll("p1", "alice").custom)
    assert isinstance(poll, PollPayload)
    assert poll.poll_id == "p1"
    assert [option.label for option in poll.options] == ["Pizza", "Tacos"]
    assert poll.author_id == "alice"
    assert poll.is_valid

    vote = interpret(poll_events.vote("v1", "p1", "bob", option_index=1).custom)
    assert vote == VotePayload(vote_id="v1", poll_id="p1", author_id="bob", option_index=1)

    author = new_object_instance(poll_schemas.get("author"), "alice", {"name": "Alice"})
    with pytest.raises(ValueError, match="unsupported poll payload schema 'author'"):
        interpret(author)


def test_tally_applies_intended_semantics(poll_events) -> None:
    entries = [
        _entry(poll_events.create_poll("bad", "alice", options=("Only",))),
        _entry(poll_events.vote("v0", "bad", "alice")),
        _entry(poll_events.create_poll("p1", "alice")),
        _entry(poll_events.vote("v1", "p1", "alice", option_index=1)),
        _entry(poll_events.vote("v2", "p1", "alice", option_index=0)),
        _entry(poll_events.vote("v3", "p1", "bob")),
        _entry(poll_events.delete_vote("d1", "p1", "bob")),
    ]

    state = tally(entries)
    assert state.polls == {"p1"}
    assert state.votes == {("p1", "alice"): 1}


@pytest.mark.asyncio
async def test_create_poll_ignores_invalid_and_repeated_polls(poll_events) -> None:
    event_log = InMemoryEventLog()
    create = build_poll_catalog(event_log).get(CREATE_POLL)

    blank = poll_events.create_poll("p0", "alice", prompt="   ")
    assert await create.execute(_entry(blank).input) is None
    assert len(event_log) == 0

    poll = poll_events.create_poll("p1", "alice")
    assert await create.execute(_entry(poll).input) == "p1"
    assert await create.execute(_entry(poll).input) is None

    (record,) = event_log.snapshot_log()
    assert (record.id, record.type, record.actor_id) == ("p1", "createPoll", "alice")
    assert record.payload == "Where should we eat"


@pytest.mark.asyncio
async def test_add_vote_is_a_noop_for_a_second_vote(poll_events, fixed_now: datetime) -> None:
    event_log = InMemoryEventLog()
    add = build_poll_catalog(event_log, clock=lambda: fixed_now).get(ADD_VOTE)

    await add.execute(_entry(poll_events.vote("v1", "p1", "alice")).input)
    await add.execute(_entry(poll_events.vote("v2", "p1", "alice")).input)
    await add.execute(_entry(poll_events.vote("v3", "p2", "alice")).input)

    records = event_log.snapshot_log()
    assert [record.id for record in records] == ["v1", "v3"]
    assert all(record.type == "vote" and record.timestamp == fixed_now for record in records)


@pytest.mark.asyncio
@pytest.mark.parametrize(("broken", "remaining"), [(False, ["v2"]), (True, [])])
async def test_delete_vote_scope(poll_events, broken: bool, remaining: list[str]) -> None:
    event_log = InMemoryEventLog()
    catalog = build_poll_catalog(event_log, broken_delete_vote=broken)
    for event in (poll_events.vote("v1", "p1", "alice"), poll_events.vote("v2", "p2", "alice")):
        await catalog.get(ADD_VOTE).execute(_entry(event).input)

    delete = poll_events.delete_vote("d1", "p1", "alice")
    removed = await catalog.get(DELETE_VOTE).execute(_entry(delete).input)

    assert [record.id for record in event_log.snapshot_log()] == remaining
    assert removed == 2 - len(remaining)


def test_seeder_entity_hooks(poll_events) -> None:
    seeder = PollSeeder()
    create = poll_events.create_poll("p1", "alice")
    vote = poll_events.vote("v1", "p1", "bob")
    delete = poll_events.delete_vote("d1", "p1", "bob")

    assert seeder.created_entity(create) == ("poll", "p1")
    assert seeder.created_entity(vote) is None
    assert seeder.dependency_of(vote) == ("poll", "p1")
    assert seeder.dependency_of(delete) == ("poll", "p1")
    assert seeder.dependency_of(create) is None
    assert seeder.known_entities([create, vote, create]) == {"poll": ["p1"]}

    assert _entry(create).action == CREATE_POLL
    assert _entry(delete).action == DELETE_VOTE
    assert _entry(vote).first("vote") is vote.custom
    assert seeder.to_log_entry(create.with_custom(None)) is None
    assert seeder.to_log_entry(vote.with_custom(create.custom)) is None


def test_create_and_dependent_events(fixed_now: datetime) -> None:
    seeder = PollSeeder()
    context = _context(3, fixed_now)

    created = seeder.create_event(context, event_id="evt-a", actor_id="bob")
    assert created.type == CREATE_POLL
    assert created.custom is not None
    assert created.custom.get("authorId") == "bob"
    assert created.payload == created.custom.get("prompt")
    assert seeder.dependent_event(context, event_id="evt-b", actor_id="bob") is None

    context.remember("poll", created.custom.id)
    dependent = seeder.dependent_event(context, event_id="evt-c", actor_id="alice")
    assert dependent is not None
    assert dependent.type in (ADD_VOTE, DELETE_VOTE)
    assert dependent.custom is not None
    assert dependent.custom.get("pollId") == created.custom.id
    assert dependent.custom.get("authorId") == "alice"


@pytest.mark.parametrize("seed", range(6))
def test_perturb_keeps_votes_well_formed(poll_events, fixed_now: datetime, seed: int) -> None:
    vote = poll_events.vote("v1", "p1", "alice", option_index=0)
    context = _context(seed, fixed_now, poll=["p1", "p2"])

    perturbed = PollSeeder().perturb(vote, context)

    assert perturbed is not None
    assert perturbed.id == vote.id
    payload = interpret(perturbed.custom)
    assert isinstance(payload, VotePayload)
    if payload.poll_id == "p2":
        assert payload.vote_id != "v1"
    else:
        assert payload.poll_id == "p1"
        assert payload.option_index in (0, 1)


def test_perturb_adds_a_poll_option_or_marks_payload(poll_events, fixed_now: datetime) -> None:
    seeder = PollSeeder()
    create = poll_events.create_poll("p1", "alice")

    perturbed = seeder.perturb(create, _context(1, fixed_now))
    assert perturbed is not None
    options = interpret(perturbed.custom).options  # type: ignore[union-attr]
    assert len(options) == 3

    bare = create.with_custom(None)
    assert seeder.perturb(bare, _context(1, fixed_now)).payload == bare.payload + "!"  # type: ignore[union-attr]


def test_with_fresh_id_renames_event_and_payload(poll_events, fixed_now: datetime) -> None:
    vote = poll_events.vote("v1", "p1", "alice")

    fresh = PollSeeder().with_fresh_id(vote, _context(4, fixed_now))

    assert fresh.id != vote.id
    assert fresh.id.startswith("evt-")
    assert fresh.custom is not None
    assert fresh.custom.id.startswith("vote-")
    assert dict(fresh.custom.properties) == dict(vote.custom.properties)


@pytest.mark.parametrize("known", [{"poll": ["p1"]}, {}])
def test_perturb_skips_rewiring_without_another_poll(
    poll_events, fixed_now: datetime, known: dict[str, list[str]]
) -> None:
    vote = poll_events.vote("v1", "p1", "alice", option_index=1)
    # A constant 0.0 source always takes the rewire branch.
    rewiring = GenerationContext(
        rng=RandomStream(lambda: 0.0),
        actor_pool=("alice", "bob"),
        now=fixed_now,
        known_entities_by_kind=known,
    )

    assert PollSeeder().perturb(vote, rewiring) is None

    stepping = GenerationContext(
        rng=RandomStream(lambda: 0.9),
        actor_pool=("alice", "bob"),
        now=fixed_now,
        known_entities_by_kind=known,
    )
    stepped = PollSeeder().perturb(vote, stepping)
    assert stepped is not None
    assert interpret(stepped.custom).option_index == 0  # type: ignore[union-attr]
    assert interpret(stepped.custom).poll_id == "p1"  # type: ignore[union-attr]
