"""Unit tests for heuristic rules and their filters."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import pytest

from widget_fuzz.diagnostics import (
    GENERIC_RULES,
    ActionImpact,
    HeuristicRule,
    RuleHit,
    Severity,
    evaluate_heuristic_findings,
)
from widget_fuzz.domain import DomainEvent
from widget_fuzz.domains.poll import POLL_RULES

NOW = datetime.fromisoformat("2024-05-01T12:00:00+00:00")


def _record(record_id: str, *, payload: str = "hi", actor: str = "alice") -> DomainEvent:
    return DomainEvent(id=record_id, actor_id=actor, payload=payload, timestamp=NOW, type="note")


def _impact(
    order: int,
    action: str = "post",
    *,
    added: Sequence[DomainEvent] = (),
    deleted: Sequence[DomainEvent] = (),
    before: int = 3,
) -> ActionImpact:
    return ActionImpact(
        id=f"act-{order}",
        action=action,
        actors=(),
        added=tuple(added),
        deleted=tuple(deleted),
        before_count=before,
        after_count=before + len(added) - len(deleted),
        order=order,
        timestamp=NOW,
    )


def _rule_ids(impacts: Sequence[ActionImpact], **kwargs: object) -> list[tuple[str, str]]:
    findings = evaluate_heuristic_findings(impacts, GENERIC_RULES, **kwargs)  # type: ignore[arg-type]
    return [(finding.rule_id, finding.action_id) for finding in findings]


def test_generic_rules_each_fire_on_their_shape() -> None:
    impacts = [
        _impact(1, deleted=[_record("r1"), _record("r2")]),
        _impact(2),
        _impact(3, added=[_record("r3"), _record("r4")]),
        _impact(4, added=[_record("r5", payload="  ")]),
        _impact(5, added=[_record("r6")]),
    ]

    assert _rule_ids(impacts) == [
        ("deleted-multiple", "act-1"),
        ("no-impact", "act-2"),
        ("duplicate-records", "act-3"),
        ("empty-record", "act-4"),
    ]


def test_findings_follow_impact_order_then_rule_order() -> None:
    impacts = [_impact(2), _impact(1, deleted=[_record("a"), _record("b")])]
    findings = evaluate_heuristic_findings(impacts, GENERIC_RULES)

    assert [finding.id for finding in findings] == ["deleted-multiple-act-1", "no-impact-act-2"]
    first = findings[0]
    assert first.severity is Severity.WEIRD
    assert first.detail == "Removed 2 records"
    assert first.to_dict() == {
        "id": "deleted-multiple-act-1",
        "ruleId": "deleted-multiple",
        "label": "Action deleted more than one record",
        "severity": "weird",
        "detail": "Removed 2 records",
        "actionId": "act-1",
        "actionOrder": 1,
    }


def test_rule_filters() -> None:
    impacts = [
        _impact(1, "addVote"),
        _impact(2, "deleteVote", deleted=[_record("a"), _record("b")]),
        _impact(3, "createPoll"),
    ]

    assert _rule_ids(impacts, active_rule_ids={"no-impact"}) == [
        ("no-impact", "act-1"),
        ("no-impact", "act-3"),
    ]
    assert _rule_ids(impacts, disabled_rule_ids={"no-impact"}) == [
        ("deleted-multiple", "act-2")
    ]
    assert _rule_ids(impacts, disabled_by_action={"addVote": {"no-impact"}}) == [
        ("deleted-multiple", "act-2"),
        ("no-impact", "act-3"),
    ]


def test_custom_rules_and_severity_coercion() -> None:
    rule = HeuristicRule(
        id="always",
        label="Always fires",
        severity="warn",  # type: ignore[arg-type]
        evaluate=lambda _impact: RuleHit(),
    )
    assert rule.severity is Severity.WARN

    (finding,) = evaluate_heuristic_findings([_impact(7)], [rule])
    assert finding.id == "always-act-7"
    assert finding.detail is None

    with pytest.raises(ValueError):
        HeuristicRule(id="x", label="", severity="fatal", evaluate=lambda _impact: None)  # type: ignore[arg-type]


def test_poll_rules_match_their_actions() -> None:
    votes = [
        DomainEvent(id=f"v{n}", actor_id="alice", payload="", timestamp=NOW, type="vote")
        for n in range(2)
    ]
    polls = [
        DomainEvent(id=f"p{n}", actor_id="alice", payload="Q", timestamp=NOW, type="createPoll")
        for n in range(2)
    ]
    impacts = [
        _impact(1, "deleteVote", deleted=votes),
        _impact(2, "addVote"),
        _impact(3, "createPoll", added=polls),
        _impact(4, "createPoll", deleted=votes),
    ]

    findings = evaluate_heuristic_findings(impacts, POLL_RULES)
    assert [(f.rule_id, f.action_id) for f in findings] == [
        ("deleteVote-multi", "act-1"),
        ("addVote-noop", "act-2"),
        ("createPoll-multi", "act-3"),
    ]
    assert findings[0].detail == "Removed 2 vote records"
