"""Explicit per-run generation state threaded through every generator call."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from widget_fuzz.generator.prng import RandomStream


@dataclass(slots=True)
class GenerationContext:
    """Random stream, actor pool, clock and known entity ids for one fuzzer run.

    ``known_entities_by_kind`` maps a schema name to the ids created so far, in
    creation order. A context is owned by a single run and never shared.
    """

    rng: RandomStream
    actor_pool: tuple[str, ...]
    now: datetime
    known_entities_by_kind: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.rng, RandomStream):
            raise ValueError(
                f"GenerationContext.rng: expected RandomStream, got {type(self.rng).__name__}"
            )
        self.actor_pool = _as_actor_pool(self.actor_pool)
        if self.now.tzinfo is None or self.now.utcoffset() is None:
            raise ValueError("GenerationContext.now: datetime must be timezone-aware")
        self.known_entities_by_kind = {
            kind: list(ids) for kind, ids in self.known_entities_by_kind.items()
        }

    def remember(self, kind: str, entity_id: str) -> None:
        known = self.known_entities_by_kind.setdefault(kind, [])
        if entity_id not in known:
            known.append(entity_id)

    def known(self, kind: str) -> tuple[str, ...]:
        return tuple(self.known_entities_by_kind.get(kind, ()))

    def fork(self, known_entities_by_kind: Mapping[str, Sequence[str]] | None = None) -> GenerationContext:
        """Return a view sharing rng, actors and clock with its own entity registry."""

        return GenerationContext(
            rng=self.rng,
            actor_pool=self.actor_pool,
            now=self.now,
            known_entities_by_kind={
                kind: list(ids) for kind, ids in (known_entities_by_kind or {}).items()
            },
        )

    def actor_at(self, offset: int, position: int) -> str:
        """Round-robin actor for ``position`` starting at ``offset``."""

        return self.actor_pool[(offset + position) % len(self.actor_pool)]


def _as_actor_pool(actors: Iterable[str]) -> tuple[str, ...]:
    if isinstance(actors, str):
        raise ValueError("actor pool must be a sequence of actor ids, not a string")
    pool = tuple(actors)
    if not pool:
        raise ValueError("actor pool must not be empty")
    for actor in pool:
        if not isinstance(actor, str) or not actor.strip():
            raise ValueError(f"actor ids must be non-empty strings, got {actor!r}")
    if len(set(pool)) != len(pool):
        raise ValueError("actor pool must not contain duplicates")
    return pool


__all__ = ["GenerationContext"]
