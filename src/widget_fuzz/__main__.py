"""Module entrypoint for ``python -m widget_fuzz``."""

from __future__ import annotations

from widget_fuzz.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
