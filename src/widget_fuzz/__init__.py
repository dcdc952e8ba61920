"""
widget-fuzz — schema-driven property-verifying sequence generator

File: src/widget_fuzz/__init__.py

Purpose
- Package root. Evolves action/event sequences for stateful chat widgets with a
  seeded genetic search, then replays them through diagnostics.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
- Heavy submodules are imported by callers, not re-exported here.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
