"""
widget-fuzz — generator

File: src/widget_fuzz/generator/__init__.py

Purpose
- Seeded PRNG, random schema instances, generation context, domain seeders and
  the genetic fuzzer.
"""

from widget_fuzz.generator.context import GenerationContext
from widget_fuzz.generator.fuzzer import (
    FuzzerOptions,
    FuzzResult,
    GenerationStats,
    GeneticFuzzer,
    generate_sequence,
)
from widget_fuzz.generator.instances import random_object_instance
from widget_fuzz.generator.prng import RandomStream, mulberry32, seeded
from widget_fuzz.generator.seeds import EventSeeder

__all__ = [
    "EventSeeder",
    "FuzzResult",
    "FuzzerOptions",
    "GenerationContext",
    "GenerationStats",
    "GeneticFuzzer",
    "RandomStream",
    "generate_sequence",
    "mulberry32",
    "random_object_instance",
    "seeded",
]
