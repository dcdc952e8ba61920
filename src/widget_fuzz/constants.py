"""Stable constants shared across the generator and diagnostics layers."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
SCHEMA_CATALOG_VERSION: Final[int] = 1

# Genetic search defaults.
DEFAULT_POPULATION_SIZE: Final[int] = 30
DEFAULT_GENERATION_COUNT: Final[int] = 30
DEFAULT_MAX_SEQUENCE_LENGTH: Final[int] = 40
DEFAULT_MUTATION_RATE: Final[float] = 0.35
DEFAULT_CREATION_WEIGHT: Final[float] = 0.35

MIN_INITIAL_LENGTH: Final[int] = 3
MAX_INITIAL_LENGTH: Final[int] = 12
ELITE_COUNT: Final[int] = 2
PARENT_POOL_SIZE: Final[int] = 10

# Fitness rewards.
BASE_SCORE: Final[int] = 1
CONSTRAINT_BONUS: Final[int] = 5

# Random instance generation defaults.
DEFAULT_MIN_VALUE: Final[int] = 0
DEFAULT_MAX_VALUE: Final[int] = 100
DEFAULT_MIN_DATE_OFFSET_MS: Final[int] = 0
DEFAULT_MAX_DATE_OFFSET_MS: Final[int] = 10_000_000_000
DEFAULT_MIN_TEXT_LENGTH: Final[int] = 1
DEFAULT_MAX_TEXT_LENGTH: Final[int] = 10
DEFAULT_MIN_ARRAY_LENGTH: Final[int] = 0
DEFAULT_MAX_ARRAY_LENGTH: Final[int] = 10
TOKEN_LENGTH: Final[int] = 8

# CLI and config defaults.
DEFAULT_ACTOR_POOL: Final[tuple[str, ...]] = ("designer", "engineer", "chief")
DEFAULT_SEED: Final[int] = 1

__all__ = [
    "BASE_SCORE",
    "CONFIG_SCHEMA_VERSION",
    "CONSTRAINT_BONUS",
    "DEFAULT_ACTOR_POOL",
    "DEFAULT_CREATION_WEIGHT",
    "DEFAULT_GENERATION_COUNT",
    "DEFAULT_MAX_ARRAY_LENGTH",
    "DEFAULT_MAX_DATE_OFFSET_MS",
    "DEFAULT_MAX_SEQUENCE_LENGTH",
    "DEFAULT_MAX_TEXT_LENGTH",
    "DEFAULT_MAX_VALUE",
    "DEFAULT_MIN_ARRAY_LENGTH",
    "DEFAULT_MIN_DATE_OFFSET_MS",
    "DEFAULT_MIN_TEXT_LENGTH",
    "DEFAULT_MIN_VALUE",
    "DEFAULT_MUTATION_RATE",
    "DEFAULT_POPULATION_SIZE",
    "DEFAULT_SEED",
    "ELITE_COUNT",
    "MAX_INITIAL_LENGTH",
    "MIN_INITIAL_LENGTH",
    "PARENT_POOL_SIZE",
    "SCHEMA_CATALOG_VERSION",
    "TOKEN_LENGTH",
]
