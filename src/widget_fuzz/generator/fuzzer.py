"""Genetic search over candidate event sequences.

Lifecycle of one run::

    Initialize -> Evaluate -> Select/Reproduce -> (loop) -> Finalize

Fitness rewards candidates that legally exercise declared constraints:

- ``BASE_SCORE`` per event whose type names a catalog action;
- ``CONSTRAINT_BONUS`` per satisfied pre/postcondition, evaluated only for
  events whose dependency was created earlier in the same candidate.

Constraint evaluation is counterfactual. For event ``i`` the preconditions see
``log[:i]`` (event ``i-1`` included) and the postconditions see the slices
``(log[:i], log[:i+1])`` of the fixed candidate; nothing is executed.

All randomness is drawn from the run's single ``RandomStream`` so a run is
reproducible from ``(seed, now)``.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final

from widget_fuzz.constants import (
    BASE_SCORE,
    CONSTRAINT_BONUS,
    DEFAULT_CREATION_WEIGHT,
    DEFAULT_GENERATION_COUNT,
    DEFAULT_MAX_SEQUENCE_LENGTH,
    DEFAULT_MUTATION_RATE,
    DEFAULT_POPULATION_SIZE,
    ELITE_COUNT,
    MAX_INITIAL_LENGTH,
    MIN_INITIAL_LENGTH,
    PARENT_POOL_SIZE,
)
from widget_fuzz.domain.actions import (
    ActionCatalog,
    ActionLogEntry,
    check_postconditions,
    check_preconditions,
)
from widget_fuzz.domain.events import DomainEvent, event_sequence_to_dicts
from widget_fuzz.domain.ids import generate_event_id, generate_run_id
from widget_fuzz.domain.schema import JSONValue
from widget_fuzz.generator.context import GenerationContext
from widget_fuzz.generator.prng import RandomStream
from widget_fuzz.generator.seeds import EventSeeder
from widget_fuzz.observability.logging import correlation_scope

logger = logging.getLogger(__name__)

Candidate = tuple[DomainEvent, ...]

_MUTATION_WEIGHTS: Final[tuple[tuple[str, float], ...]] = (
    ("insert", 0.3),
    ("delete", 0.15),
    ("perturb", 0.3),
    ("swap", 0.15),
    ("duplicate", 0.1),
)


@dataclass(frozen=True, slots=True)
class FuzzerOptions:
    population_size: int = DEFAULT_POPULATION_SIZE
    generation_count: int = DEFAULT_GENERATION_COUNT
    max_sequence_length: int = DEFAULT_MAX_SEQUENCE_LENGTH
    mutation_rate: float = DEFAULT_MUTATION_RATE
    creation_weight: float = DEFAULT_CREATION_WEIGHT
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        for name in ("population_size", "max_sequence_length"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"FuzzerOptions.{name}: must be an integer >= 1")
        if (
            isinstance(self.generation_count, bool)
            or not isinstance(self.generation_count, int)
            or self.generation_count < 0
        ):
            raise ValueError("FuzzerOptions.generation_count: must be an integer >= 0")
        for name in ("mutation_rate", "creation_weight"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not 0.0 <= float(value) <= 1.0:
                raise ValueError(f"FuzzerOptions.{name}: must be within [0, 1]")
        if self.timeout_seconds is not None and (
            not isinstance(self.timeout_seconds, (int, float))
            or not math.isfinite(self.timeout_seconds)
            or self.timeout_seconds <= 0
        ):
            raise ValueError("FuzzerOptions.timeout_seconds: must be a positive number")


@dataclass(frozen=True, slots=True)
class GenerationStats:
    generation: int
    best: int
    worst: int
    mean: float

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "generation": self.generation,
            "best": self.best,
            "worst": self.worst,
            "mean": round(self.mean, 4),
        }


@dataclass(frozen=True, slots=True)
class FuzzResult:
    """Finalized best-ever candidate plus per-generation statistics."""

    run_id: str
    events: Candidate
    best_fitness: int
    history: tuple[GenerationStats, ...] = field(default=())
    seed: int | None = None
    timed_out: bool = False

    @property
    def initial_worst(self) -> int:
        return self.history[0].worst if self.history else 0

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "run_id": self.run_id,
            "seed": self.seed,
            "best_fitness": self.best_fitness,
            "timed_out": self.timed_out,
            "history": [stats.to_dict() for stats in self.history],
            "events": event_sequence_to_dicts(self.events),
        }


class GeneticFuzzer:
    """Population-based search for constraint-exercising event sequences."""

    def __init__(
        self,
        catalog: ActionCatalog,
        seeder: EventSeeder,
        actor_pool: Sequence[str],
        options: FuzzerOptions | None = None,
        *,
        rng: RandomStream,
        now: datetime | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._catalog = catalog
        self._seeder = seeder
        self._options = options or FuzzerOptions()
        self._clock = clock
        self._context = GenerationContext(
            rng=rng,
            actor_pool=tuple(actor_pool),
            now=now if now is not None else datetime.now(UTC),
        )

    @property
    def options(self) -> FuzzerOptions:
        return self._options

    @property
    def context(self) -> GenerationContext:
        return self._context

    def run(self) -> FuzzResult:
        options = self._options
        rng = self._context.rng
        run_id = generate_run_id(rng)
        deadline = (
            self._clock() + options.timeout_seconds
            if options.timeout_seconds is not None
            else None
        )

        with correlation_scope(run_id=run_id, seed=rng.seed):
            logger.info(
                "fuzzer run started",
                extra={
                    "population_size": options.population_size,
                    "generation_count": options.generation_count,
                    "max_sequence_length": options.max_sequence_length,
                },
            )
            population = [self._initial_candidate() for _ in range(options.population_size)]
            ranked, scores = self._rank(population)

            history = [_stats(0, scores)]
            best, best_fitness = ranked[0], scores[0]
            timed_out = False

            for generation in range(1, options.generation_count + 1):
                if deadline is not None and self._clock() >= deadline:
                    timed_out = True
                    logger.warning(
                        "fuzzer deadline reached; stopping early",
                        extra={"completed_generations": generation - 1},
                    )
                    break
                population = self._reproduce(ranked)
                ranked, scores = self._rank(population)
                history.append(_stats(generation, scores))
                if scores[0] > best_fitness:
                    best, best_fitness = ranked[0], scores[0]
                logger.debug(
                    "generation evaluated",
                    extra={"generation": generation, "best": scores[0], "worst": scores[-1]},
                )

            finalized = self._finalize(best)
            logger.info(
                "fuzzer run finished",
                extra={"best_fitness": best_fitness, "length": len(finalized)},
            )

        return FuzzResult(
            run_id=run_id,
            events=finalized,
            best_fitness=best_fitness,
            history=tuple(history),
            seed=rng.seed,
            timed_out=timed_out,
        )

    def fitness(self, candidate: Sequence[DomainEvent]) -> int:
        score = 0
        log: list[ActionLogEntry] = []
        created: dict[str, set[str]] = {}

        for event in candidate:
            entry = self._seeder.to_log_entry(event)
            if event.type in self._catalog:
                score += BASE_SCORE
                dependency = self._seeder.dependency_of(event)
                if (
                    entry is not None
                    and dependency is not None
                    and dependency[1] in created.get(dependency[0], ())
                ):
                    action = self._catalog.get(event.type)
                    previous = tuple(log)
                    results = (
                        *check_preconditions(action, previous, entry),
                        *check_postconditions(action, previous, (*previous, entry), entry),
                    )
                    score += CONSTRAINT_BONUS * sum(1 for result in results if result.passed)

            if entry is not None:
                log.append(entry)
            made = self._seeder.created_entity(event)
            if made is not None:
                created.setdefault(made[0], set()).add(made[1])

        return score

    def _rank(self, population: Sequence[Candidate]) -> tuple[list[Candidate], list[int]]:
        scored = [(self.fitness(candidate), candidate) for candidate in population]
        # Stable sort keeps earlier individuals first among equal scores.
        scored.sort(key=lambda item: -item[0])
        return [candidate for _, candidate in scored], [score for score, _ in scored]

    def _initial_candidate(self) -> Candidate:
        options = self._options
        rng = self._context.rng
        upper = max(1, min(MAX_INITIAL_LENGTH, options.max_sequence_length))
        length = rng.randint(min(MIN_INITIAL_LENGTH, upper), upper)
        offset = rng.index(len(self._context.actor_pool))

        view = self._context.fork()
        events: list[DomainEvent] = []
        for position in range(length):
            event = self._seeder.random_event(
                view,
                event_id=generate_event_id(rng),
                actor_id=view.actor_at(offset, position),
                creation_weight=options.creation_weight,
            )
            events.append(event)
            made = self._seeder.created_entity(event)
            if made is not None:
                view.remember(*made)
        return tuple(events)

    def _reproduce(self, ranked: Sequence[Candidate]) -> list[Candidate]:
        options = self._options
        rng = self._context.rng
        next_population = list(ranked[: min(ELITE_COUNT, options.population_size)])
        parents = ranked[: min(options.population_size, PARENT_POOL_SIZE)]

        while len(next_population) < options.population_size:
            child = self._crossover(rng.choice(parents), rng.choice(parents))
            if rng.chance(options.mutation_rate):
                child = self._mutate(child)
            next_population.append(child)
        return next_population

    def _crossover(self, parent_a: Candidate, parent_b: Candidate) -> Candidate:
        rng = self._context.rng
        if not parent_a and not parent_b:
            return parent_a if rng.chance(0.5) else parent_b
        if not parent_a:
            return parent_b
        if not parent_b:
            return parent_a
        cut_a = rng.randint(0, len(parent_a))
        cut_b = rng.randint(0, len(parent_b))
        child = parent_a[:cut_a] + parent_b[cut_b:]
        return child[: self._options.max_sequence_length]

    def _mutate(self, candidate: Candidate) -> Candidate:
        operator = self._context.rng.weighted(_MUTATION_WEIGHTS)
        if operator == "insert":
            return self._mutate_insert(candidate)
        if operator == "delete":
            return self._mutate_delete(candidate)
        if operator == "perturb":
            return self._mutate_perturb(candidate)
        if operator == "swap":
            return self._mutate_swap(candidate)
        return self._mutate_duplicate(candidate)

    def _mutate_insert(self, candidate: Candidate) -> Candidate:
        if len(candidate) >= self._options.max_sequence_length:
            return candidate
        rng = self._context.rng
        position = rng.randint(0, len(candidate))
        view = self._context.fork(self._seeder.known_entities(candidate[:position]))
        event = self._seeder.random_event(
            view,
            event_id=generate_event_id(rng),
            actor_id=rng.choice(view.actor_pool),
            creation_weight=self._options.creation_weight,
        )
        return (*candidate[:position], event, *candidate[position:])

    def _mutate_delete(self, candidate: Candidate) -> Candidate:
        if not candidate:
            return candidate
        position = self._context.rng.index(len(candidate))
        return candidate[:position] + candidate[position + 1 :]

    def _mutate_perturb(self, candidate: Candidate) -> Candidate:
        if not candidate:
            return candidate
        position = self._context.rng.index(len(candidate))
        view = self._context.fork(self._seeder.known_entities(candidate[:position]))
        perturbed = self._seeder.perturb(candidate[position], view)
        if perturbed is None:
            return candidate
        return (*candidate[:position], perturbed, *candidate[position + 1 :])

    def _mutate_swap(self, candidate: Candidate) -> Candidate:
        if len(candidate) < 2:
            return candidate
        rng = self._context.rng
        first = rng.index(len(candidate))
        second = rng.index(len(candidate))
        swapped = list(candidate)
        swapped[first], swapped[second] = swapped[second], swapped[first]
        return tuple(swapped)

    def _mutate_duplicate(self, candidate: Candidate) -> Candidate:
        if not candidate or len(candidate) >= self._options.max_sequence_length:
            return candidate
        position = self._context.rng.index(len(candidate))
        duplicate = self._seeder.with_fresh_id(candidate[position], self._context)
        return (*candidate[: position + 1], duplicate, *candidate[position + 1 :])

    def _finalize(self, best: Candidate) -> Candidate:
        length = len(best)
        now = self._context.now
        return tuple(
            event.with_timestamp(now - timedelta(seconds=length - position))
            for position, event in enumerate(best)
        )


def _stats(generation: int, scores: Sequence[int]) -> GenerationStats:
    return GenerationStats(
        generation=generation,
        best=scores[0],
        worst=scores[-1],
        mean=sum(scores) / len(scores),
    )


def generate_sequence(
    seed: int,
    catalog: ActionCatalog,
    seeder: EventSeeder,
    actor_pool: Sequence[str],
    options: FuzzerOptions | None = None,
    *,
    now: datetime | None = None,
) -> FuzzResult:
    """Run one seeded search; identical arguments yield identical results."""

    fuzzer = GeneticFuzzer(
        catalog,
        seeder,
        actor_pool,
        options,
        rng=RandomStream.from_seed(seed),
        now=now,
    )
    return fuzzer.run()


__all__ = [
    "Candidate",
    "FuzzResult",
    "FuzzerOptions",
    "GenerationStats",
    "GeneticFuzzer",
    "generate_sequence",
]
