"""UI package exports for the CLI and rendering surfaces."""

from widget_fuzz.ui.cli import CLIError, build_parser, main, run_cli
from widget_fuzz.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
