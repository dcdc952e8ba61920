"""Chat poll reference domain.

Actions:

- ``createPoll`` appends a ``createPoll`` record whose id is the poll id. Polls
  need a non-blank prompt and at least two options, otherwise nothing happens.
- ``addVote`` appends a ``vote`` record unless the author already voted on
  that poll.
- ``deleteVote`` removes the author's votes on that poll. The broken variant
  ignores the poll and removes every vote of the author.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Final

from widget_fuzz.diagnostics.heuristics import HeuristicRule, RuleHit, Severity
from widget_fuzz.diagnostics.observer import ActionImpact
from widget_fuzz.domain.actions import (
    Action,
    ActionCatalog,
    ActionInput,
    ActionLogEntry,
    Constraint,
    InputSlot,
)
from widget_fuzz.domain.catalog import SchemaCatalog
from widget_fuzz.domain.events import DomainEvent
from widget_fuzz.domain.ids import generate_event_id, generate_prefixed_id, random_token
from widget_fuzz.domain.schema import ObjectInstance, is_of_schema, new_object_instance
from widget_fuzz.generator.context import GenerationContext
from widget_fuzz.generator.instances import random_object_instance
from widget_fuzz.generator.seeds import EntityRef, EventSeeder
from widget_fuzz.generator.text import lorem
from widget_fuzz.persistence.event_log import EventLog

CREATE_POLL: Final[str] = "createPoll"
ADD_VOTE: Final[str] = "addVote"
DELETE_VOTE: Final[str] = "deleteVote"

POLL_RECORD: Final[str] = "createPoll"
VOTE_RECORD: Final[str] = "vote"

POLL_SCHEMA: Final[str] = "poll"
VOTE_SCHEMA: Final[str] = "vote"
AUTHOR_SCHEMA: Final[str] = "author"

_PERTURB_MARKER: Final[str] = "!"


@functools.cache
def load_poll_schemas() -> SchemaCatalog:
    return SchemaCatalog.load_resource("widget_fuzz.domains", "poll_schemas.yaml")


# --- tagged payload variants -------------------------------------------------


@dataclass(frozen=True, slots=True)
class PollOption:
    id: str
    label: str


@dataclass(frozen=True, slots=True)
class PollPayload:
    poll_id: str
    prompt: str
    options: tuple[PollOption, ...]
    author_id: str | None

    @property
    def is_valid(self) -> bool:
        return bool(self.prompt.strip()) and len(self.options) >= 2


@dataclass(frozen=True, slots=True)
class VotePayload:
    vote_id: str
    poll_id: str | None
    author_id: str | None
    option_index: int

    @property
    def key(self) -> tuple[str | None, str | None]:
        return (self.poll_id, self.author_id)


PollDomainPayload = PollPayload | VotePayload


def interpret(instance: ObjectInstance) -> PollDomainPayload:
    """Decode a custom payload by schema name; unknown schemas are an error."""

    if is_of_schema(instance, POLL_SCHEMA):
        raw_options = instance.get("options")
        options: list[PollOption] = []
        if isinstance(raw_options, (list, tuple)):
            for raw in raw_options:
                if isinstance(raw, Mapping):
                    options.append(
                        PollOption(id=str(raw.get("id", "")), label=str(raw.get("label", "")))
                    )
        prompt = instance.get("prompt")
        return PollPayload(
            poll_id=instance.id,
            prompt=prompt if isinstance(prompt, str) else "",
            options=tuple(options),
            author_id=_optional_str(instance.get("authorId")),
        )
    if is_of_schema(instance, VOTE_SCHEMA):
        raw_index = instance.get("optionIndex")
        return VotePayload(
            vote_id=instance.id,
            poll_id=_optional_str(instance.get("pollId")),
            author_id=_optional_str(instance.get("authorId")),
            option_index=int(raw_index) if isinstance(raw_index, (int, float)) else 0,
        )
    raise ValueError(f"unsupported poll payload schema {instance.schema.name!r}")


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


# --- constraints ---------------------------------------------------------------


@dataclass(slots=True)
class PollTally:
    polls: set[str] = field(default_factory=set)
    votes: dict[tuple[str | None, str | None], int] = field(default_factory=dict)


def tally(entries: Sequence[ActionLogEntry]) -> PollTally:
    """Replay the intended poll semantics over an action log."""

    state = PollTally()
    for entry in entries:
        if entry.action == CREATE_POLL:
            poll = entry.first("poll")
            if poll is None:
                continue
            payload = interpret(poll)
            if isinstance(payload, PollPayload) and payload.is_valid:
                state.polls.add(payload.poll_id)
        elif entry.action in (ADD_VOTE, DELETE_VOTE):
            vote = _vote_input(entry.input)
            if vote is None:
                continue
            if entry.action == ADD_VOTE:
                if vote.poll_id in state.polls and vote.key not in state.votes:
                    state.votes[vote.key] = vote.option_index
            else:
                state.votes.pop(vote.key, None)
    return state


def _vote_input(action_input: ActionInput) -> VotePayload | None:
    instances = action_input.get("vote", ())
    if not instances:
        return None
    payload = interpret(instances[0])
    return payload if isinstance(payload, VotePayload) else None


def _poll_exists(
    previous: Sequence[ActionLogEntry], _next: Sequence[ActionLogEntry], action_input: ActionInput
) -> bool:
    vote = _vote_input(action_input)
    return vote is not None and vote.poll_id in tally(previous).polls


def _vote_counted(
    _previous: Sequence[ActionLogEntry], next_log: Sequence[ActionLogEntry], action_input: ActionInput
) -> bool:
    vote = _vote_input(action_input)
    return vote is not None and vote.key in tally(next_log).votes


def _vote_exists(
    previous: Sequence[ActionLogEntry], _next: Sequence[ActionLogEntry], action_input: ActionInput
) -> bool:
    vote = _vote_input(action_input)
    return vote is not None and vote.key in tally(previous).votes


def _vote_removed(
    _previous: Sequence[ActionLogEntry], next_log: Sequence[ActionLogEntry], action_input: ActionInput
) -> bool:
    vote = _vote_input(action_input)
    return vote is not None and vote.key not in tally(next_log).votes


POLL_EXISTS = Constraint("poll-exists", "The voted poll was created earlier", _poll_exists)
VOTE_COUNTED = Constraint("vote-counted", "The author's vote is counted afterwards", _vote_counted)
VOTE_EXISTS = Constraint("vote-exists", "The author has a vote on the poll", _vote_exists)
VOTE_REMOVED = Constraint("vote-removed", "The author's vote is gone afterwards", _vote_removed)


# --- actions -------------------------------------------------------------------


def build_poll_catalog(
    event_log: EventLog,
    *,
    broken_delete_vote: bool = False,
    clock: Callable[[], datetime] | None = None,
    schemas: SchemaCatalog | None = None,
) -> ActionCatalog:
    """Poll actions bound to ``event_log``."""

    catalog = schemas or load_poll_schemas()
    now = clock or (lambda: datetime.now(UTC))
    poll_schema = catalog.get(POLL_SCHEMA)
    vote_schema = catalog.get(VOTE_SCHEMA)
    author_schema = catalog.get(AUTHOR_SCHEMA)

    def has_record(record_id: str) -> bool:
        return any(record.id == record_id for record in event_log.snapshot_log())

    async def create_poll(action_input: ActionInput) -> str | None:
        instances = action_input.get("poll", ())
        if not instances:
            return None
        poll = interpret(instances[0])
        if not isinstance(poll, PollPayload) or not poll.is_valid:
            return None
        authors = action_input.get("author", ())
        author_id = authors[0].id if authors else poll.author_id
        if author_id is None or has_record(poll.poll_id):
            return None
        await event_log.add_entry(
            DomainEvent(
                id=poll.poll_id,
                actor_id=author_id,
                payload=poll.prompt.strip(),
                timestamp=now(),
                type=POLL_RECORD,
                custom=instances[0],
            )
        )
        return poll.poll_id

    async def add_vote(action_input: ActionInput) -> None:
        vote = _vote_input(action_input)
        if vote is None or vote.poll_id is None or vote.author_id is None:
            return
        if has_record(vote.vote_id) or _find_votes(event_log, vote.poll_id, vote.author_id):
            return
        await event_log.add_entry(
            DomainEvent(
                id=vote.vote_id,
                actor_id=vote.author_id,
                payload="",
                timestamp=now(),
                type=VOTE_RECORD,
                custom=action_input["vote"][0],
            )
        )

    async def delete_vote(action_input: ActionInput) -> int:
        vote = _vote_input(action_input)
        if vote is None or vote.author_id is None:
            return 0
        poll_filter = None if broken_delete_vote else vote.poll_id
        doomed = _find_votes(event_log, poll_filter, vote.author_id)
        for record in doomed:
            await event_log.remove_entry(record.id)
        return len(doomed)

    return ActionCatalog(
        (
            Action(
                name=CREATE_POLL,
                description="Create a new poll with options",
                execute=create_poll,
                input_definition=(
                    InputSlot("poll", poll_schema),
                    InputSlot("author", author_schema, min_count=0),
                ),
            ),
            Action(
                name=ADD_VOTE,
                description="Add a vote to a poll",
                execute=add_vote,
                input_definition=(InputSlot("vote", vote_schema),),
                pre_conditions=(POLL_EXISTS,),
                post_conditions=(VOTE_COUNTED,),
            ),
            Action(
                name=DELETE_VOTE,
                description="Delete a vote from a poll",
                execute=delete_vote,
                input_definition=(InputSlot("vote", vote_schema),),
                pre_conditions=(VOTE_EXISTS,),
                post_conditions=(VOTE_REMOVED,),
            ),
        ),
        catalog,
    )


def _find_votes(
    event_log: EventLog, poll_id: str | None, author_id: str
) -> list[DomainEvent]:
    """Vote records by ``author_id``; ``poll_id=None`` matches every poll."""

    found: list[DomainEvent] = []
    for record in event_log.snapshot_log():
        if record.type != VOTE_RECORD or record.custom is None:
            continue
        if not is_of_schema(record.custom, VOTE_SCHEMA) or record.actor_id != author_id:
            continue
        if poll_id is None or record.custom.get("pollId") == poll_id:
            found.append(record)
    return found


# --- heuristic rules -----------------------------------------------------------


def _delete_vote_multi(impact: ActionImpact) -> RuleHit | None:
    removed = sum(1 for record in impact.deleted if record.type == VOTE_RECORD)
    if impact.action == DELETE_VOTE and removed > 1:
        return RuleHit(f"Removed {removed} vote records")
    return None


def _add_vote_noop(impact: ActionImpact) -> RuleHit | None:
    if impact.action == ADD_VOTE and impact.is_noop:
        return RuleHit("Action returned but did not persist a vote")
    return None


def _create_poll_multi(impact: ActionImpact) -> RuleHit | None:
    created = sum(1 for record in impact.added if record.type == POLL_RECORD)
    if impact.action == CREATE_POLL and created > 1:
        return RuleHit(f"Created {created} poll records")
    return None


POLL_RULES: tuple[HeuristicRule, ...] = (
    HeuristicRule(
        id="deleteVote-multi",
        label="deleteVote removed multiple votes",
        severity=Severity.WEIRD,
        evaluate=_delete_vote_multi,
    ),
    HeuristicRule(
        id="addVote-noop",
        label="addVote executed without DB change",
        severity=Severity.WARN,
        evaluate=_add_vote_noop,
    ),
    HeuristicRule(
        id="createPoll-multi",
        label="createPoll produced multiple records",
        severity=Severity.WARN,
        evaluate=_create_poll_multi,
    ),
)


# --- seed generator ------------------------------------------------------------


class PollSeeder(EventSeeder):
    """Creates polls and votes referencing polls created earlier in the candidate."""

    def __init__(self, schemas: SchemaCatalog | None = None, *, add_vote_weight: float = 0.7) -> None:
        catalog = schemas or load_poll_schemas()
        self._poll_schema = catalog.get(POLL_SCHEMA)
        self._vote_schema = catalog.get(VOTE_SCHEMA)
        self._add_vote_weight = add_vote_weight

    def create_event(
        self, context: GenerationContext, *, event_id: str, actor_id: str
    ) -> DomainEvent:
        poll = random_object_instance(
            self._poll_schema,
            generate_prefixed_id("poll", context.rng),
            rng=context.rng,
            actor_pool=context.actor_pool,
            references={"authorId": actor_id},
            known_entities=context.known_entities_by_kind,
            now=context.now,
        )
        prompt = poll.get("prompt")
        return DomainEvent(
            id=event_id,
            actor_id=actor_id,
            payload=prompt if isinstance(prompt, str) else "",
            timestamp=context.now,
            type=CREATE_POLL,
            custom=poll,
        )

    def dependent_event(
        self, context: GenerationContext, *, event_id: str, actor_id: str
    ) -> DomainEvent | None:
        polls = context.known(POLL_SCHEMA)
        if not polls:
            return None
        poll_id = context.rng.choice(polls)
        action = ADD_VOTE if context.rng.chance(self._add_vote_weight) else DELETE_VOTE
        vote = random_object_instance(
            self._vote_schema,
            generate_prefixed_id("vote", context.rng),
            rng=context.rng,
            actor_pool=context.actor_pool,
            references={"pollId": poll_id, "authorId": actor_id},
            known_entities=context.known_entities_by_kind,
            now=context.now,
        )
        return DomainEvent(
            id=event_id,
            actor_id=actor_id,
            payload="",
            timestamp=context.now,
            type=action,
            custom=vote,
        )

    def perturb(self, event: DomainEvent, context: GenerationContext) -> DomainEvent | None:
        custom = event.custom
        if custom is None or not (
            is_of_schema(custom, POLL_SCHEMA) or is_of_schema(custom, VOTE_SCHEMA)
        ):
            return replace(event, payload=event.payload + _PERTURB_MARKER)

        payload = interpret(custom)
        if isinstance(payload, VotePayload):
            if context.rng.chance(0.5):
                others = [poll for poll in context.known(POLL_SCHEMA) if poll != payload.poll_id]
                if not others:
                    return None
                rewired = new_object_instance(
                    self._vote_schema,
                    generate_prefixed_id("vote", context.rng),
                    {**custom.properties, "pollId": context.rng.choice(others)},
                )
                return event.with_custom(rewired)
            step = 1 if context.rng.chance(0.5) else -1
            return event.with_custom(
                custom.with_properties(optionIndex=max(0, payload.option_index + step))
            )

        options = [
            {"id": option.id, "label": option.label} for option in payload.options
        ]
        options.append({"id": random_token(context.rng), "label": lorem(context.rng, 1)})
        return event.with_custom(custom.with_properties(options=options))

    def dependency_of(self, event: DomainEvent) -> EntityRef | None:
        if event.type not in (ADD_VOTE, DELETE_VOTE) or event.custom is None:
            return None
        payload = interpret(event.custom)
        if isinstance(payload, VotePayload) and payload.poll_id is not None:
            return (POLL_SCHEMA, payload.poll_id)
        return None

    def created_entity(self, event: DomainEvent) -> EntityRef | None:
        custom = event.custom
        if event.type == CREATE_POLL and custom is not None and is_of_schema(custom, POLL_SCHEMA):
            return (POLL_SCHEMA, custom.id)
        return None

    def to_log_entry(self, event: DomainEvent) -> ActionLogEntry | None:
        if event.custom is None:
            return None
        if event.type == CREATE_POLL and is_of_schema(event.custom, POLL_SCHEMA):
            return ActionLogEntry(action=CREATE_POLL, input={"poll": (event.custom,)})
        if event.type in (ADD_VOTE, DELETE_VOTE) and is_of_schema(event.custom, VOTE_SCHEMA):
            return ActionLogEntry(action=event.type, input={"vote": (event.custom,)})
        return None

    def with_fresh_id(self, event: DomainEvent, context: GenerationContext) -> DomainEvent:
        fresh = replace(event, id=generate_event_id(context.rng))
        custom = event.custom
        if custom is None or custom.schema.name not in (POLL_SCHEMA, VOTE_SCHEMA):
            return fresh
        return fresh.with_custom(
            new_object_instance(
                custom.schema,
                generate_prefixed_id(custom.schema.name, context.rng),
                custom.properties,
            )
        )


__all__ = [
    "ADD_VOTE",
    "CREATE_POLL",
    "DELETE_VOTE",
    "POLL_RULES",
    "POLL_EXISTS",
    "VOTE_COUNTED",
    "VOTE_EXISTS",
    "VOTE_REMOVED",
    "PollDomainPayload",
    "PollOption",
    "PollPayload",
    "PollSeeder",
    "PollTally",
    "VotePayload",
    "build_poll_catalog",
    "interpret",
    "load_poll_schemas",
    "tally",
]
