"""Seeded identifier generation for generated entities."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from widget_fuzz.constants import TOKEN_LENGTH

if TYPE_CHECKING:
    from widget_fuzz.generator.prng import RandomSource

BASE36_ALPHABET: Final[str] = "0123456789abcdefghijklmnopqrstuvwxyz"
_PREFIX_SEPARATOR: Final[str] = "-"

# Stable entity ID prefixes.
EVENT_ID_PREFIX: Final[str] = "evt"
IMPACT_ID_PREFIX: Final[str] = "act"
RUN_ID_PREFIX: Final[str] = "run"

_PREFIX_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9]{0,15}$")

__all__ = [
    "BASE36_ALPHABET",
    "EVENT_ID_PREFIX",
    "IMPACT_ID_PREFIX",
    "RUN_ID_PREFIX",
    "generate_event_id",
    "generate_prefixed_id",
    "generate_run_id",
    "random_token",
]


def random_token(rng: RandomSource, *, length: int = TOKEN_LENGTH) -> str:
    """Derive a base-36 token from the fractional digits of one rng draw."""

    if length <= 0:
        raise ValueError("token length must be > 0")
    value = rng()
    chars: list[str] = []
    for _ in range(length):
        value *= 36
        digit = min(int(value), 35)
        chars.append(BASE36_ALPHABET[digit])
        value -= digit
    return "".join(chars)


def generate_prefixed_id(prefix: str, rng: RandomSource, *, length: int = TOKEN_LENGTH) -> str:
    """Generate ``<prefix>-<token>`` from the seeded stream."""

    _validate_prefix(prefix)
    return f"{prefix}{_PREFIX_SEPARATOR}{random_token(rng, length=length)}"


def generate_event_id(rng: RandomSource) -> str:
    return generate_prefixed_id(EVENT_ID_PREFIX, rng)


def generate_run_id(rng: RandomSource) -> str:
    return generate_prefixed_id(RUN_ID_PREFIX, rng, length=12)


def _validate_prefix(prefix: str) -> None:
    if not isinstance(prefix, str):
        raise ValueError(f"prefix must be a string, got {type(prefix).__name__}")
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError("prefix must match ^[a-z][a-z0-9]{0,15}$")
