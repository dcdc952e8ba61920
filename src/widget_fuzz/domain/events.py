"""Domain events: the chromosome gene of a candidate and the record kept in the event log."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from widget_fuzz.domain.schema import JSONValue, ObjectInstance, new_object_instance

if TYPE_CHECKING:
    from collections.abc import Mapping

    from widget_fuzz.domain.catalog import SchemaCatalog


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """One action invocation with resolved input, or one persisted log record.

    Events are immutable; copying a tuple of events is therefore a deep copy.
    """

    id: str
    actor_id: str
    payload: str
    timestamp: datetime
    type: str
    custom: ObjectInstance | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "DomainEvent.id"))
        object.__setattr__(self, "actor_id", _as_str(self.actor_id, "DomainEvent.actor_id"))
        object.__setattr__(self, "type", _as_str(self.type, "DomainEvent.type"))
        if not isinstance(self.payload, str):
            raise ValueError(
                f"DomainEvent.payload: expected string, got {type(self.payload).__name__}"
            )
        object.__setattr__(
            self, "timestamp", _as_utc_datetime(self.timestamp, "DomainEvent.timestamp")
        )
        if self.custom is not None and not isinstance(self.custom, ObjectInstance):
            raise ValueError(
                "DomainEvent.custom: expected ObjectInstance or None, "
                f"got {type(self.custom).__name__}"
            )

    def with_timestamp(self, timestamp: datetime) -> DomainEvent:
        return replace(self, timestamp=timestamp)

    def with_custom(self, custom: ObjectInstance | None) -> DomainEvent:
        return replace(self, custom=custom)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "actorId": self.actor_id,
            "payload": self.payload,
            "timestamp": datetime_to_iso8601z(self.timestamp),
            "type": self.type,
            "custom": self.custom.to_dict() if self.custom is not None else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], schemas: SchemaCatalog) -> DomainEvent:
        """Rebuild an event; ``custom.schema`` is resolved by name through ``schemas``."""

        if not isinstance(data, dict):
            raise ValueError(f"DomainEvent: expected object, got {type(data).__name__}")
        required = {"id", "actorId", "payload", "timestamp", "type"}
        unknown = sorted(key for key in data if key not in required and key != "custom")
        if unknown:
            raise ValueError(f"DomainEvent: unexpected fields: {unknown}")
        missing = sorted(key for key in required if key not in data)
        if missing:
            raise ValueError(f"DomainEvent: missing required fields: {missing}")

        custom: ObjectInstance | None = None
        raw_custom = data.get("custom")
        if raw_custom is not None:
            if not isinstance(raw_custom, dict):
                raise ValueError("DomainEvent.custom: expected object or null")
            schema = schemas.get(_as_str(raw_custom.get("schema"), "DomainEvent.custom.schema"))
            properties = raw_custom.get("properties") or {}
            if not isinstance(properties, dict):
                raise ValueError("DomainEvent.custom.properties: expected object")
            custom = new_object_instance(
                schema, _as_str(raw_custom.get("id"), "DomainEvent.custom.id"), properties
            )

        return cls(
            id=data["id"],  # type: ignore[arg-type]
            actor_id=data["actorId"],  # type: ignore[arg-type]
            payload=data["payload"],  # type: ignore[arg-type]
            timestamp=data["timestamp"],  # type: ignore[arg-type]
            type=data["type"],  # type: ignore[arg-type]
            custom=custom,
        )


def event_sequence_to_dicts(events: tuple[DomainEvent, ...] | list[DomainEvent]) -> list[JSONValue]:
    return [event.to_dict() for event in events]


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{path}: expected string, got {type(value).__name__}")
    parsed = value.strip()
    if not parsed:
        raise ValueError(f"{path}: must not be empty")
    return parsed


def _as_utc_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError as exc:
            raise ValueError(f"{path}: invalid ISO-8601 datetime: {value!r}") from exc
    else:
        raise ValueError(
            f"{path}: expected datetime or ISO-8601 string, got {type(value).__name__}"
        )

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise ValueError(f"{path}: datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_utc_datetime(value, "timestamp")
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["DomainEvent", "datetime_to_iso8601z", "event_sequence_to_dicts"]
