"""Shared fixtures: a fixed clock and hand-built poll events."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

import pytest

from widget_fuzz.domain import DomainEvent, SchemaCatalog, new_object_instance
from widget_fuzz.domains.poll import (
    ADD_VOTE,
    CREATE_POLL,
    DELETE_VOTE,
    POLL_SCHEMA,
    VOTE_SCHEMA,
    load_poll_schemas,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class PollEvents:
    """Builds poll/vote events with readable ids for replay scenarios."""

    def __init__(self, schemas: SchemaCatalog) -> None:
        self._schemas = schemas
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"evt-{self._counter}"

    def _timestamp(self) -> datetime:
        return FIXED_NOW + timedelta(seconds=self._counter)

    def create_poll(
        self,
        poll_id: str,
        actor: str,
        *,
        prompt: str = "Where should we eat",
        options: Sequence[str] = ("Pizza", "Tacos"),
    ) -> DomainEvent:
        poll = new_object_instance(
            self._schemas.get(POLL_SCHEMA),
            poll_id,
            {
                "prompt": prompt,
                "options": [
                    {"id": f"opt{index}", "label": label} for index, label in enumerate(options)
                ],
                "authorId": actor,
            },
        )
        event_id = self._next_id()
        return DomainEvent(
            id=event_id,
            actor_id=actor,
            payload=prompt,
            timestamp=self._timestamp(),
            type=CREATE_POLL,
            custom=poll,
        )

    def vote(
        self,
        vote_id: str,
        poll_id: str,
        actor: str,
        *,
        option_index: int = 0,
        action: str = ADD_VOTE,
    ) -> DomainEvent:
        vote = new_object_instance(
            self._schemas.get(VOTE_SCHEMA),
            vote_id,
            {"optionIndex": option_index, "pollId": poll_id, "authorId": actor},
        )
        event_id = self._next_id()
        return DomainEvent(
            id=event_id,
            actor_id=actor,
            payload="",
            timestamp=self._timestamp(),
            type=action,
            custom=vote,
        )

    def delete_vote(self, vote_id: str, poll_id: str, actor: str) -> DomainEvent:
        return self.vote(vote_id, poll_id, actor, action=DELETE_VOTE)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def poll_schemas() -> SchemaCatalog:
    return load_poll_schemas()


@pytest.fixture
def poll_events(poll_schemas: SchemaCatalog) -> PollEvents:
    return PollEvents(poll_schemas)
