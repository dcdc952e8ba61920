"""Replay, minimization and verification of flagged poll runs."""

from __future__ import annotations

from datetime import datetime

import pytest

from widget_fuzz.diagnostics import (
    GENERIC_RULES,
    evaluate_heuristic_findings,
    minimize_impacts,
    replay_sequence,
    run_diagnostics,
)
from widget_fuzz.diagnostics.minimizer import creator_index
from widget_fuzz.domain import ActionCatalog
from widget_fuzz.domains.poll import POLL_RULES, PollSeeder, build_poll_catalog
from widget_fuzz.persistence import EventLog, InMemoryEventLog

RULES = (*GENERIC_RULES, *POLL_RULES)


def _broken(event_log: EventLog) -> ActionCatalog:
    return build_poll_catalog(event_log, broken_delete_vote=True)


def _correct(event_log: EventLog) -> ActionCatalog:
    return build_poll_catalog(event_log)


def _cross_poll_delete(poll_events) -> list:
    return [
        poll_events.create_poll("p1", "alice"),
        poll_events.create_poll("p2", "alice"),
        poll_events.vote("v1", "p1", "alice"),
        poll_events.vote("v2", "p2", "alice"),
        poll_events.create_poll("p3", "bob"),
        poll_events.delete_vote("d1", "p1", "alice"),
    ]


@pytest.mark.asyncio
async def test_broken_delete_is_flagged_and_minimized(poll_events, fixed_now: datetime) -> None:
    events = _cross_poll_delete(poll_events)

    report = await run_diagnostics(_broken, PollSeeder(), events, RULES, clock=lambda: fixed_now)

    assert [(f.rule_id, f.action_id) for f in report.findings] == [
        ("deleted-multiple", "act-6"),
        ("deleteVote-multi", "act-6"),
    ]
    assert [impact.id for impact in report.minimized] == ["act-1", "act-2", "act-3", "act-4", "act-6"]
    assert [event.id for event in report.minimized_events] == [
        "evt-1",
        "evt-2",
        "evt-3",
        "evt-4",
        "evt-6",
    ]
    assert report.widened is False
    assert report.rule_ids == {"deleted-multiple", "deleteVote-multi"}

    payload = report.to_dict()
    assert payload["minimized"] == ["act-1", "act-2", "act-3", "act-4", "act-6"]
    assert len(payload["impacts"]) == 6  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_correct_delete_raises_no_findings(poll_events) -> None:
    report = await run_diagnostics(_correct, PollSeeder(), _cross_poll_delete(poll_events), RULES)

    assert report.findings == ()
    assert report.minimized == ()
    assert report.minimized_events == ()
    assert report.widened is False


@pytest.mark.asyncio
async def test_state_dependent_noop_widens_to_prefix(poll_events) -> None:
    events = [
        poll_events.create_poll("p1", "alice"),
        poll_events.vote("v1", "p1", "alice"),
        poll_events.vote("v2", "p1", "alice"),
    ]

    report = await run_diagnostics(_correct, PollSeeder(), events, RULES)

    assert [(f.rule_id, f.action_id) for f in report.findings] == [
        ("no-impact", "act-3"),
        ("addVote-noop", "act-3"),
    ]
    assert report.widened is True
    assert [impact.id for impact in report.minimized] == ["act-1", "act-2", "act-3"]
    assert list(report.minimized_events) == events


@pytest.mark.asyncio
async def test_disabled_rules_are_not_reported(poll_events) -> None:
    report = await run_diagnostics(
        _broken,
        PollSeeder(),
        _cross_poll_delete(poll_events),
        RULES,
        disabled_rule_ids={"deleted-multiple"},
    )
    assert report.rule_ids == {"deleteVote-multi"}


@pytest.mark.asyncio
async def test_replay_can_enforce_preconditions(poll_events) -> None:
    events = [
        poll_events.vote("v1", "p1", "alice"),
        poll_events.create_poll("p1", "alice"),
        poll_events.vote("v2", "p1", "alice"),
    ]

    ungated_log = InMemoryEventLog()
    ungated = await replay_sequence(_correct(ungated_log), PollSeeder(), events, ungated_log)
    assert len(ungated.impacts) == 3
    assert ungated.skipped == ()

    gated_log = InMemoryEventLog()
    gated = await replay_sequence(
        _correct(gated_log), PollSeeder(), events, gated_log, enforce_preconditions=True
    )
    assert [event.id for event in gated.skipped] == ["evt-1"]
    assert [impact.action for impact in gated.impacts] == ["createPoll", "addVote"]
    assert [event.id for _impact, event in gated.events_by_impact] == ["evt-2", "evt-3"]


@pytest.mark.asyncio
async def test_closure_follows_references_and_deletions(poll_events) -> None:
    event_log = InMemoryEventLog()
    replay = await replay_sequence(
        _broken(event_log), PollSeeder(), _cross_poll_delete(poll_events), event_log
    )
    creators = creator_index(replay.impacts)
    assert creators["p1"] == "act-1"
    assert creators["v2"] == "act-4"

    findings = evaluate_heuristic_findings(replay.impacts, RULES)
    minimized = minimize_impacts(replay.impacts, findings)
    assert "act-5" not in {impact.id for impact in minimized}
    assert minimize_impacts(replay.impacts, ()) == ()
