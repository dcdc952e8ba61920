"""Schema-driven random object instances.

Generation never raises for a malformed schema: an ``object`` property without a
nested schema yields ``{}`` and an unresolvable reference yields ``None``, so a
bad schema produces a low-fitness but valid individual.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta

from widget_fuzz.constants import (
    DEFAULT_MAX_ARRAY_LENGTH,
    DEFAULT_MAX_DATE_OFFSET_MS,
    DEFAULT_MAX_TEXT_LENGTH,
    DEFAULT_MAX_VALUE,
    DEFAULT_MIN_ARRAY_LENGTH,
    DEFAULT_MIN_DATE_OFFSET_MS,
    DEFAULT_MIN_TEXT_LENGTH,
    DEFAULT_MIN_VALUE,
)
from widget_fuzz.domain.ids import random_token
from widget_fuzz.domain.schema import (
    ObjectInstance,
    ObjectSchema,
    PropertyDefinition,
    PropertyType,
    new_object_instance,
)
from widget_fuzz.generator.prng import RandomStream
from widget_fuzz.generator.text import lorem

logger = logging.getLogger(__name__)


def random_object_instance(
    schema: ObjectSchema,
    instance_id: str,
    *,
    rng: RandomStream,
    actor_pool: Sequence[str],
    references: Mapping[str, object] | None = None,
    known_entities: Mapping[str, Sequence[str]] | None = None,
    now: datetime | None = None,
) -> ObjectInstance:
    """Produce a fully populated instance of ``schema``.

    ``references`` are merged after generation and always win; they wire foreign
    keys such as the poll a vote belongs to. Relationships absent from
    ``references`` are filled from ``known_entities`` when a target exists.
    """

    known = known_entities or {}
    clock = now if now is not None else datetime.now(UTC)

    values: dict[str, object] = {}
    for prop in schema.properties:
        values[prop.name] = _generate_property(prop, rng, actor_pool, known, clock)

    supplied = references or {}
    for rel in schema.relationships:
        if rel.property_name in supplied:
            continue
        candidates = known.get(rel.target_schema, ())
        if not candidates:
            continue
        picked = rng.choice(candidates)
        values[rel.property_name] = [picked] if rel.is_many else picked

    values.update(supplied)
    return new_object_instance(schema, instance_id, values)


def _generate_property(
    prop: PropertyDefinition,
    rng: RandomStream,
    actor_pool: Sequence[str],
    known: Mapping[str, Sequence[str]],
    now: datetime,
) -> object:
    if prop.array:
        low = prop.min_length if prop.min_length is not None else DEFAULT_MIN_ARRAY_LENGTH
        high = prop.max_length if prop.max_length is not None else DEFAULT_MAX_ARRAY_LENGTH
        count = rng.randint(low, high)
        return [
            _generate_scalar(prop, rng, actor_pool, known, now, element=True)
            for _ in range(count)
        ]
    return _generate_scalar(prop, rng, actor_pool, known, now, element=False)


def _generate_scalar(
    prop: PropertyDefinition,
    rng: RandomStream,
    actor_pool: Sequence[str],
    known: Mapping[str, Sequence[str]],
    now: datetime,
    *,
    element: bool,
) -> object:
    kind = prop.type
    if kind is PropertyType.NUMBER:
        return rng.randint(
            int(prop.min_value if prop.min_value is not None else DEFAULT_MIN_VALUE),
            int(prop.max_value if prop.max_value is not None else DEFAULT_MAX_VALUE),
        )
    if kind is PropertyType.STRING:
        # Length bounds of an array property bound the element count instead.
        low = DEFAULT_MIN_TEXT_LENGTH
        high = DEFAULT_MAX_TEXT_LENGTH
        if not element:
            low = prop.min_length if prop.min_length is not None else low
            high = prop.max_length if prop.max_length is not None else high
        return lorem(rng, rng.randint(low, high))
    if kind is PropertyType.BOOLEAN:
        return rng.chance(0.5)
    if kind is PropertyType.DATE:
        offset_ms = rng.randint(
            int(prop.min_value if prop.min_value is not None else DEFAULT_MIN_DATE_OFFSET_MS),
            int(prop.max_value if prop.max_value is not None else DEFAULT_MAX_DATE_OFFSET_MS),
        )
        return now - timedelta(milliseconds=offset_ms)
    if kind is PropertyType.PERSONA:
        if not actor_pool:
            raise ValueError(f"property {prop.name!r}: persona requires a non-empty actor pool")
        return rng.choice(actor_pool)
    if kind is PropertyType.ID:
        return random_token(rng)
    if kind is PropertyType.REFERENCE:
        candidates = known.get(prop.reference_schema or "", ())
        if not candidates:
            logger.warning(
                "no known %r entity for reference property %r",
                prop.reference_schema,
                prop.name,
            )
            return None
        return rng.choice(candidates)
    if kind is PropertyType.OBJECT:
        if not prop.schema:
            return {}
        return {
            sub.name: _generate_property(sub, rng, actor_pool, known, now) for sub in prop.schema
        }
    raise ValueError(f"unsupported property type {kind!r}")


__all__ = ["random_object_instance"]
