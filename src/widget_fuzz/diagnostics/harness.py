"""Replay an evolved sequence through observed actions and report findings.

``run_diagnostics`` replays the events against the real action implementations,
evaluates heuristic rules on the recorded impacts and minimizes the run. The
minimized events are replayed into a fresh log to confirm every flagged rule
still fires; when the reference closure misses a rule (state-dependent
findings such as no-ops), the selection is widened with the full prefix up to
that rule's earliest impact until every rule is reproduced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from widget_fuzz.diagnostics.heuristics import (
    HeuristicFinding,
    HeuristicRule,
    evaluate_heuristic_findings,
)
from widget_fuzz.diagnostics.minimizer import minimize_events, minimize_impacts
from widget_fuzz.diagnostics.observer import ActionImpact, ActionObserver, ImpactRecorder
from widget_fuzz.domain.actions import ActionCatalog, ActionLogEntry, PreconditionFailed
from widget_fuzz.domain.events import DomainEvent, event_sequence_to_dicts
from widget_fuzz.domain.schema import JSONValue
from widget_fuzz.generator.seeds import EventSeeder
from widget_fuzz.persistence.event_log import EventLog, InMemoryEventLog

logger = logging.getLogger(__name__)

CatalogFactory = Callable[[EventLog], ActionCatalog]


@dataclass(frozen=True, slots=True)
class ReplayResult:
    impacts: tuple[ActionImpact, ...]
    events_by_impact: tuple[tuple[ActionImpact, DomainEvent], ...]
    skipped: tuple[DomainEvent, ...]


@dataclass(frozen=True, slots=True)
class DiagnosticsReport:
    impacts: tuple[ActionImpact, ...]
    findings: tuple[HeuristicFinding, ...]
    minimized: tuple[ActionImpact, ...]
    minimized_events: tuple[DomainEvent, ...]
    widened: bool = False

    @property
    def rule_ids(self) -> frozenset[str]:
        return frozenset(finding.rule_id for finding in self.findings)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "findings": [finding.to_dict() for finding in self.findings],
            "impacts": [impact.to_dict() for impact in self.impacts],
            "minimized": [impact.id for impact in self.minimized],
            "minimizedEvents": event_sequence_to_dicts(self.minimized_events),
            "widened": self.widened,
        }


async def replay_sequence(
    catalog: ActionCatalog,
    seeder: EventSeeder,
    events: Sequence[DomainEvent],
    event_log: EventLog,
    *,
    clock: Callable[[], datetime] | None = None,
    enforce_preconditions: bool = False,
) -> ReplayResult:
    """Execute ``events`` in order through observer-wrapped actions.

    Events that do not map to a catalog action are skipped. With
    ``enforce_preconditions`` the invocation is gated by ``ActionCatalog.invoke``
    and unlicensed events are skipped as well.
    """

    recorder = ImpactRecorder(clock=clock)
    observed = ActionObserver(event_log.snapshot_log, recorder).wrap_catalog(catalog)
    history: list[ActionLogEntry] = []
    pairs: list[tuple[ActionImpact, DomainEvent]] = []
    skipped: list[DomainEvent] = []

    for event in events:
        entry = seeder.to_log_entry(event)
        if entry is None or entry.action not in observed:
            logger.debug("skipping event %s of type %r", event.id, event.type)
            skipped.append(event)
            continue

        recorded_before = len(recorder.impacts)
        if enforce_preconditions:
            try:
                await observed.invoke(entry.action, entry.input, history)
            except PreconditionFailed as exc:
                logger.info("skipping unlicensed event %s: %s", event.id, exc)
                skipped.append(event)
                continue
        else:
            await observed.get(entry.action).execute(entry.input)

        if len(recorder.impacts) > recorded_before:
            pairs.append((recorder.impacts[-1], event))

    return ReplayResult(
        impacts=recorder.impacts,
        events_by_impact=tuple(pairs),
        skipped=tuple(skipped),
    )


async def run_diagnostics(
    catalog_factory: CatalogFactory,
    seeder: EventSeeder,
    events: Sequence[DomainEvent],
    rules: Sequence[HeuristicRule],
    *,
    log_factory: Callable[[], EventLog] = InMemoryEventLog,
    active_rule_ids: Collection[str] | None = None,
    disabled_rule_ids: Collection[str] = (),
    disabled_by_action: Mapping[str, Collection[str]] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> DiagnosticsReport:
    """Replay, evaluate, minimize and verify one run.

    ``catalog_factory`` binds the actions to a fresh event log; it is called
    once for the full replay and once per verification replay.
    """

    def evaluate(impacts: Sequence[ActionImpact]) -> tuple[HeuristicFinding, ...]:
        return evaluate_heuristic_findings(
            impacts,
            rules,
            active_rule_ids=active_rule_ids,
            disabled_rule_ids=disabled_rule_ids,
            disabled_by_action=disabled_by_action,
        )

    async def replay(subset: Sequence[DomainEvent]) -> ReplayResult:
        event_log = log_factory()
        return await replay_sequence(catalog_factory(event_log), seeder, subset, event_log, clock=clock)

    full = await replay(events)
    findings = evaluate(full.impacts)
    minimized = minimize_impacts(full.impacts, findings)
    wanted = {finding.rule_id for finding in findings}

    widened = False
    selected = {impact.id for impact in minimized}
    while True:
        kept = tuple(impact for impact in full.impacts if impact.id in selected)
        kept_events = minimize_events(full.events_by_impact, kept)
        reproduced = {finding.rule_id for finding in evaluate((await replay(kept_events)).impacts)}
        missing = wanted - reproduced
        if not missing:
            break
        earliest = min(
            (finding for finding in findings if finding.rule_id in missing),
            key=lambda finding: finding.action_order,
        )
        prefix = {impact.id for impact in full.impacts if impact.order <= earliest.action_order}
        if prefix <= selected:
            # Widening cannot progress; the full run is the reproduction.
            selected = {impact.id for impact in full.impacts}
            kept = full.impacts
            kept_events = minimize_events(full.events_by_impact, kept)
            widened = True
            break
        selected |= prefix
        widened = True
        logger.info(
            "widened minimized run to reproduce rule %s",
            earliest.rule_id,
            extra={"rule_id": earliest.rule_id, "selected": len(selected)},
        )

    logger.info(
        "diagnostics finished",
        extra={
            "impacts": len(full.impacts),
            "findings": len(findings),
            "minimized": len(kept),
        },
    )
    return DiagnosticsReport(
        impacts=full.impacts,
        findings=findings,
        minimized=kept,
        minimized_events=kept_events,
        widened=widened,
    )


__all__ = [
    "CatalogFactory",
    "DiagnosticsReport",
    "ReplayResult",
    "replay_sequence",
    "run_diagnostics",
]
