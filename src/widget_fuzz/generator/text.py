"""Pseudo-text for generated string properties."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from widget_fuzz.generator.prng import RandomStream

LOREM_WORDS: Final[tuple[str, ...]] = (
    "lorem", "ipsum", "dolor", "sit", "amet", "consectetur", "adipiscing", "elit",
    "sed", "do", "eiusmod", "tempor", "incididunt", "ut", "labore", "et", "dolore",
    "magna", "aliqua", "enim", "ad", "minim", "veniam", "quis", "nostrud",
    "exercitation", "ullamco", "laboris", "nisi", "aliquip", "ex", "ea", "commodo",
    "consequat", "duis", "aute", "irure", "in", "reprehenderit", "voluptate",
    "velit", "esse", "cillum", "fugiat", "nulla", "pariatur", "excepteur", "sint",
    "occaecat", "cupidatat", "non", "proident", "sunt", "culpa", "qui", "officia",
    "deserunt", "mollit", "anim", "id", "est", "laborum",
)  # fmt: skip


def lorem(rng: RandomStream, word_count: int) -> str:
    """Return ``word_count`` words drawn from the stream, first letter capitalized."""

    if word_count <= 0:
        return ""
    words = [rng.choice(LOREM_WORDS) for _ in range(word_count)]
    words[0] = words[0].capitalize()
    return " ".join(words)


__all__ = ["LOREM_WORDS", "lorem"]
