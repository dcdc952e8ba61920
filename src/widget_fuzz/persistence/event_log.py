"""Mutation sink over the authoritative event log.

Actions mutate state only through an ``EventLog``; the diagnostics observer
reads it through ``snapshot_log``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol

from widget_fuzz.domain.events import DomainEvent

LogUpdater = Callable[[tuple[DomainEvent, ...]], Iterable[DomainEvent]]


class EventLog(Protocol):
    """Append/remove/replace/read contract consumed by action implementations."""

    async def add_entry(self, entry: DomainEvent) -> None: ...

    async def remove_entry(self, entry_id: str) -> None: ...

    def replace_log(self, updater: LogUpdater) -> None: ...

    def snapshot_log(self) -> tuple[DomainEvent, ...]: ...


class InMemoryEventLog:
    """List-backed ``EventLog``; record ids are unique."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[DomainEvent] = ()) -> None:
        self._entries: list[DomainEvent] = []
        self._set_entries(entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def add_entry(self, entry: DomainEvent) -> None:
        if any(existing.id == entry.id for existing in self._entries):
            raise ValueError(f"event log already contains record {entry.id!r}")
        self._entries.append(entry)

    async def remove_entry(self, entry_id: str) -> None:
        self._entries = [entry for entry in self._entries if entry.id != entry_id]

    def replace_log(self, updater: LogUpdater) -> None:
        self._set_entries(updater(tuple(self._entries)))

    def snapshot_log(self) -> tuple[DomainEvent, ...]:
        return tuple(self._entries)

    def _set_entries(self, entries: Iterable[DomainEvent]) -> None:
        replaced = list(entries)
        ids = [entry.id for entry in replaced]
        if len(set(ids)) != len(ids):
            raise ValueError("event log records must have unique ids")
        self._entries = replaced


__all__ = ["EventLog", "InMemoryEventLog", "LogUpdater"]
