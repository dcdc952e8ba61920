"""Domain seed generators: how a domain creates, links and perturbs candidate events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import replace
from typing import TYPE_CHECKING

from widget_fuzz.domain.ids import generate_event_id

if TYPE_CHECKING:
    from widget_fuzz.domain.actions import ActionLogEntry
    from widget_fuzz.domain.events import DomainEvent
    from widget_fuzz.generator.context import GenerationContext

EntityRef = tuple[str, str]


class EventSeeder(ABC):
    """Domain hooks used by the fuzzer.

    A seeder knows two families of events: creation events introduce a new
    entity, and dependent events point at an entity created earlier. The
    fuzzer never interprets payloads itself; it only goes through these hooks.
    """

    @abstractmethod
    def create_event(
        self, context: GenerationContext, *, event_id: str, actor_id: str
    ) -> DomainEvent:
        """Return a creation event."""

    @abstractmethod
    def dependent_event(
        self, context: GenerationContext, *, event_id: str, actor_id: str
    ) -> DomainEvent | None:
        """Return an event referencing a known entity, or ``None`` when none exists."""

    @abstractmethod
    def perturb(self, event: DomainEvent, context: GenerationContext) -> DomainEvent | None:
        """Return a perturbed copy of ``event``, or ``None`` to skip the mutation."""

    @abstractmethod
    def dependency_of(self, event: DomainEvent) -> EntityRef | None:
        """Return ``(kind, id)`` of the entity ``event`` depends on."""

    @abstractmethod
    def created_entity(self, event: DomainEvent) -> EntityRef | None:
        """Return ``(kind, id)`` of the entity ``event`` creates."""

    @abstractmethod
    def to_log_entry(self, event: DomainEvent) -> ActionLogEntry | None:
        """Translate an event to the action-log entry constraints reason over."""

    def random_event(
        self,
        context: GenerationContext,
        *,
        event_id: str,
        actor_id: str,
        creation_weight: float,
    ) -> DomainEvent:
        kind = context.rng.weighted(
            (("create", creation_weight), ("dependent", 1.0 - creation_weight))
        )
        if kind == "dependent":
            dependent = self.dependent_event(context, event_id=event_id, actor_id=actor_id)
            if dependent is not None:
                return dependent
        return self.create_event(context, event_id=event_id, actor_id=actor_id)

    def with_fresh_id(self, event: DomainEvent, context: GenerationContext) -> DomainEvent:
        return replace(event, id=generate_event_id(context.rng))

    def known_entities(self, events: Iterable[DomainEvent]) -> dict[str, list[str]]:
        """Entities created by ``events``, grouped by kind in creation order."""

        known: dict[str, list[str]] = {}
        for event in events:
            created = self.created_entity(event)
            if created is None:
                continue
            kind, entity_id = created
            bucket = known.setdefault(kind, [])
            if entity_id not in bucket:
                bucket.append(entity_id)
        return known


__all__ = ["EntityRef", "EventSeeder"]
