"""Heuristic anomaly rules evaluated per recorded action impact."""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

from widget_fuzz.diagnostics.observer import ActionImpact
from widget_fuzz.domain.events import DomainEvent
from widget_fuzz.domain.schema import JSONValue, to_json_value


class Severity(StrEnum):
    WARN = "warn"
    WEIRD = "weird"


@dataclass(frozen=True, slots=True)
class RuleHit:
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class HeuristicRule:
    id: str
    label: str
    severity: Severity
    evaluate: Callable[[ActionImpact], RuleHit | None]

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("HeuristicRule.id: must be a non-empty string")
        object.__setattr__(self, "severity", Severity(self.severity))


@dataclass(frozen=True, slots=True)
class HeuristicFinding:
    id: str
    rule_id: str
    label: str
    severity: Severity
    detail: str | None
    action_id: str
    action_order: int

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "label": self.label,
            "severity": self.severity.value,
            "detail": self.detail,
            "actionId": self.action_id,
            "actionOrder": self.action_order,
        }


def _deleted_multiple(impact: ActionImpact) -> RuleHit | None:
    if len(impact.deleted) > 1:
        return RuleHit(f"Removed {len(impact.deleted)} records")
    return None


def _no_impact(impact: ActionImpact) -> RuleHit | None:
    if impact.is_noop:
        return RuleHit("Action returned without changing the log")
    return None


def _record_fingerprint(record: DomainEvent) -> JSONValue:
    custom = record.custom
    return to_json_value(
        {
            "actorId": record.actor_id,
            "payload": record.payload,
            "type": record.type,
            "schema": custom.schema.name if custom is not None else None,
            "properties": dict(custom.properties) if custom is not None else None,
        }
    )


def _duplicate_records(impact: ActionImpact) -> RuleHit | None:
    seen: list[JSONValue] = []
    duplicates = 0
    for record in impact.added:
        fingerprint = _record_fingerprint(record)
        if fingerprint in seen:
            duplicates += 1
        else:
            seen.append(fingerprint)
    if duplicates:
        return RuleHit(f"Created {duplicates} identical record(s)")
    return None


def _is_empty_record(record: DomainEvent) -> bool:
    if record.payload.strip():
        return False
    return record.custom is None or not record.custom.properties


def _empty_record(impact: ActionImpact) -> RuleHit | None:
    empty = [record.id for record in impact.added if _is_empty_record(record)]
    if empty:
        return RuleHit(f"Created empty record(s): {', '.join(empty)}")
    return None


DELETED_MULTIPLE = HeuristicRule(
    id="deleted-multiple",
    label="Action deleted more than one record",
    severity=Severity.WEIRD,
    evaluate=_deleted_multiple,
)
NO_IMPACT = HeuristicRule(
    id="no-impact",
    label="Action recorded no database impact",
    severity=Severity.WARN,
    evaluate=_no_impact,
)
DUPLICATE_RECORDS = HeuristicRule(
    id="duplicate-records",
    label="Action created identical records",
    severity=Severity.WARN,
    evaluate=_duplicate_records,
)
EMPTY_RECORD = HeuristicRule(
    id="empty-record",
    label="Action created an empty record",
    severity=Severity.WARN,
    evaluate=_empty_record,
)

GENERIC_RULES: tuple[HeuristicRule, ...] = (
    DELETED_MULTIPLE,
    NO_IMPACT,
    DUPLICATE_RECORDS,
    EMPTY_RECORD,
)


def evaluate_heuristic_findings(
    impacts: Iterable[ActionImpact],
    rules: Sequence[HeuristicRule],
    *,
    active_rule_ids: Collection[str] | None = None,
    disabled_rule_ids: Collection[str] = (),
    disabled_by_action: Mapping[str, Collection[str]] | None = None,
) -> tuple[HeuristicFinding, ...]:
    """Evaluate ``rules`` against every impact, in impact order then rule order.

    ``active_rule_ids`` (when given) restricts evaluation to those rules;
    ``disabled_rule_ids`` suppresses rules globally and ``disabled_by_action``
    per action name.
    """

    per_action = disabled_by_action or {}
    findings: list[HeuristicFinding] = []
    for impact in sorted(impacts, key=lambda item: item.order):
        suppressed = per_action.get(impact.action, ())
        for rule in rules:
            if active_rule_ids is not None and rule.id not in active_rule_ids:
                continue
            if rule.id in disabled_rule_ids or rule.id in suppressed:
                continue
            hit = rule.evaluate(impact)
            if hit is None:
                continue
            findings.append(
                HeuristicFinding(
                    id=f"{rule.id}-{impact.id}",
                    rule_id=rule.id,
                    label=rule.label,
                    severity=rule.severity,
                    detail=hit.detail,
                    action_id=impact.id,
                    action_order=impact.order,
                )
            )
    return tuple(findings)


__all__ = [
    "DELETED_MULTIPLE",
    "DUPLICATE_RECORDS",
    "EMPTY_RECORD",
    "GENERIC_RULES",
    "NO_IMPACT",
    "HeuristicFinding",
    "HeuristicRule",
    "RuleHit",
    "Severity",
    "evaluate_heuristic_findings",
]
