"""Transparent action wrappers that record database impact.

``ActionObserver.wrap`` replaces each action's ``execute`` with a decorator that
snapshots the event log before and after the call, diffs the snapshots by
record id and reports the change to a sink. Return values and exceptions of the
wrapped ``execute`` pass through unchanged; a failed call reports nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from widget_fuzz.domain.actions import Action, ActionCatalog, ActionInput
from widget_fuzz.domain.events import DomainEvent, datetime_to_iso8601z
from widget_fuzz.domain.ids import IMPACT_ID_PREFIX
from widget_fuzz.domain.schema import JSONValue

logger = logging.getLogger(__name__)

Snapshot = Callable[[], Sequence[DomainEvent]]


@dataclass(frozen=True, slots=True)
class ObservedChange:
    action: str
    added: tuple[DomainEvent, ...]
    deleted: tuple[DomainEvent, ...]
    before_count: int
    after_count: int


ChangeSink = Callable[[ObservedChange], None]


@dataclass(frozen=True, slots=True)
class ActionImpact:
    """One numbered, observed invocation."""

    id: str
    action: str
    actors: tuple[str, ...]
    added: tuple[DomainEvent, ...]
    deleted: tuple[DomainEvent, ...]
    before_count: int
    after_count: int
    order: int
    timestamp: datetime

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.deleted and self.before_count == self.after_count

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "action": self.action,
            "actors": list(self.actors),
            "added": [record.to_dict() for record in self.added],
            "deleted": [record.to_dict() for record in self.deleted],
            "beforeCount": self.before_count,
            "afterCount": self.after_count,
            "order": self.order,
            "timestamp": datetime_to_iso8601z(self.timestamp),
        }


def diff_snapshots(
    action: str,
    before: Sequence[DomainEvent],
    after: Sequence[DomainEvent],
) -> ObservedChange:
    before_ids = {record.id for record in before}
    after_ids = {record.id for record in after}
    return ObservedChange(
        action=action,
        added=tuple(record for record in after if record.id not in before_ids),
        deleted=tuple(record for record in before if record.id not in after_ids),
        before_count=len(before),
        after_count=len(after),
    )


class ActionObserver:
    def __init__(self, snapshot: Snapshot, sink: ChangeSink) -> None:
        self._snapshot = snapshot
        self._sink = sink

    def wrap_action(self, action: Action) -> Action:
        execute = action.execute
        name = action.name

        async def observed_execute(action_input: ActionInput) -> object:
            before = tuple(self._snapshot())
            result = await execute(action_input)
            # Let mutations scheduled by execute settle before reading back.
            await asyncio.sleep(0)
            after = tuple(self._snapshot())
            self._sink(diff_snapshots(name, before, after))
            return result

        return replace(action, execute=observed_execute)

    def wrap(self, actions: Iterable[Action]) -> tuple[Action, ...]:
        return tuple(self.wrap_action(action) for action in actions)

    def wrap_catalog(self, catalog: ActionCatalog) -> ActionCatalog:
        return catalog.with_actions(self.wrap(catalog))


class ImpactRecorder:
    """Sink numbering observed changes into ``ActionImpact`` records."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._impacts: list[ActionImpact] = []

    def __call__(self, change: ObservedChange) -> None:
        order = len(self._impacts) + 1
        actors: list[str] = []
        for record in (*change.added, *change.deleted):
            if record.actor_id not in actors:
                actors.append(record.actor_id)
        impact = ActionImpact(
            id=f"{IMPACT_ID_PREFIX}-{order}",
            action=change.action,
            actors=tuple(actors),
            added=change.added,
            deleted=change.deleted,
            before_count=change.before_count,
            after_count=change.after_count,
            order=order,
            timestamp=self._clock(),
        )
        self._impacts.append(impact)
        logger.debug(
            "recorded impact %s", describe_impact(impact), extra={"impact_id": impact.id}
        )

    @property
    def impacts(self) -> tuple[ActionImpact, ...]:
        return tuple(self._impacts)

    def clear(self) -> None:
        self._impacts.clear()


def describe_impact(impact: ActionImpact) -> str:
    actors = ", ".join(impact.actors) if impact.actors else "nobody"
    return (
        f"#{impact.order} {impact.action} by {actors}: "
        f"+{len(impact.added)} -{len(impact.deleted)} "
        f"({impact.before_count} -> {impact.after_count})"
    )


__all__ = [
    "ActionImpact",
    "ActionObserver",
    "ChangeSink",
    "ImpactRecorder",
    "ObservedChange",
    "Snapshot",
    "describe_impact",
    "diff_snapshots",
]
