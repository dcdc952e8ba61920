"""Reduce a flagged run to a dependency-closed subsequence.

Starting from the earliest impact per distinct rule, the closure pulls in every
impact that created a record referenced by a selected impact's added or deleted
records, and every impact that created a record a selected impact deleted.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence

from widget_fuzz.diagnostics.heuristics import HeuristicFinding
from widget_fuzz.diagnostics.observer import ActionImpact
from widget_fuzz.domain.events import DomainEvent
from widget_fuzz.domain.schema import collect_references


def creator_index(impacts: Iterable[ActionImpact]) -> dict[str, str]:
    """Map record ids (and their payload instance ids) to the first impact adding them."""

    index: dict[str, str] = {}
    for impact in impacts:
        for record in impact.added:
            index.setdefault(record.id, impact.id)
            if record.custom is not None:
                index.setdefault(record.custom.id, impact.id)
    return index


def _dependencies(impact: ActionImpact) -> set[str]:
    needed: set[str] = set()
    for record in (*impact.added, *impact.deleted):
        if record.custom is not None:
            needed.update(collect_references(record.custom))
    needed.update(record.id for record in impact.deleted)
    return needed


def minimize_impacts(
    impacts: Sequence[ActionImpact],
    findings: Iterable[HeuristicFinding],
) -> tuple[ActionImpact, ...]:
    by_id = {impact.id: impact for impact in impacts}

    seeds: list[str] = []
    seen_rules: set[str] = set()
    for finding in sorted(findings, key=lambda item: item.action_order):
        if finding.rule_id in seen_rules or finding.action_id not in by_id:
            continue
        seen_rules.add(finding.rule_id)
        seeds.append(finding.action_id)

    creators = creator_index(impacts)
    selected: set[str] = set(seeds)
    pending = deque(seeds)
    while pending:
        impact = by_id[pending.popleft()]
        for record_id in _dependencies(impact):
            creator = creators.get(record_id)
            if creator is None or creator in selected:
                continue
            selected.add(creator)
            pending.append(creator)

    return tuple(impact for impact in impacts if impact.id in selected)


def minimize_events(
    events_by_impact: Sequence[tuple[ActionImpact, DomainEvent]],
    minimized: Iterable[ActionImpact],
) -> tuple[DomainEvent, ...]:
    """Return the input events that produced ``minimized``, in original order."""

    keep = {impact.id for impact in minimized}
    return tuple(event for impact, event in events_by_impact if impact.id in keep)


__all__ = ["creator_index", "minimize_events", "minimize_impacts"]
