"""Command-line interface router for widget-fuzz."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from widget_fuzz.config import (
    ConfigLoadError,
    ConfigValidationError,
    assert_valid_config,
    epoch_from_config,
    fuzzer_options_from_config,
    load_config,
)
from widget_fuzz.diagnostics import GENERIC_RULES, DiagnosticsReport, run_diagnostics
from widget_fuzz.domain import ActionCatalog
from widget_fuzz.domain.events import datetime_to_iso8601z
from widget_fuzz.domains.poll import POLL_RULES, PollSeeder, build_poll_catalog
from widget_fuzz.generator import FuzzResult, generate_sequence
from widget_fuzz.observability import setup_logging, shutdown_logging
from widget_fuzz.persistence import EventLog, InMemoryEventLog
from widget_fuzz.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="widget-fuzz",
        description=(
            "widget-fuzz — evolve action sequences for stateful chat widgets.\n\n"
            "Common workflows:\n"
            "  widget-fuzz run                 Evolve and diagnose a poll sequence\n"
            "  widget-fuzz run --broken        Diagnose the faulty deleteVote variant\n"
            "  widget-fuzz config              Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./widget_fuzz.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name (quick, thorough).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Evolve a poll sequence and replay it through diagnostics",
        description=(
            "Run the genetic search against the poll widget, then replay the best\n"
            "sequence with heuristic rules and minimization.\n\n"
            "Examples:\n"
            "  widget-fuzz run --seed 7\n"
            "  widget-fuzz run --seed 7 --now 2024-05-01T12:00:00Z --json\n"
            "  widget-fuzz run --profile quick --broken\n"
            "  widget-fuzz run --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("--seed", type=int, default=None, help="PRNG seed")
    run_parser.add_argument(
        "--population", type=int, default=None, help="Candidates per generation"
    )
    run_parser.add_argument(
        "--generations", type=int, default=None, help="Number of generations"
    )
    run_parser.add_argument(
        "--max-length", type=int, default=None, help="Maximum events per candidate"
    )
    run_parser.add_argument(
        "--now",
        default=None,
        metavar="TIMESTAMP",
        help="Pin the run clock (ISO-8601 with offset) so a seeded run is reproducible",
    )
    run_parser.add_argument(
        "--broken",
        action="store_true",
        default=False,
        help="Use the deleteVote variant that ignores the poll id",
    )
    run_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, file, env, and profile.\n\n"
            "Examples:\n"
            "  widget-fuzz config\n"
            "  widget-fuzz config --json\n"
            "  widget-fuzz config --profile thorough\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {
        "fuzzer.seed": getattr(args, "seed", None),
        "fuzzer.population_size": getattr(args, "population", None),
        "fuzzer.generation_count": getattr(args, "generations", None),
        "fuzzer.max_sequence_length": getattr(args, "max_length", None),
        "fuzzer.epoch": _optional_str(getattr(args, "now", None)),
    }
    if _flag(args, "broken"):
        overrides["diagnostics.broken_delete_vote"] = True
    config = _load_effective_config(args, overrides)

    fuzzer = config["fuzzer"]
    diagnostics = config["diagnostics"]
    seed: int = fuzzer["seed"]
    broken: bool = diagnostics["broken_delete_vote"]
    actors = tuple(config["actors"]["pool"])

    try:
        options = fuzzer_options_from_config(config)
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    # One instant stamps the finalized sequence and every recorded impact.
    now = epoch_from_config(config) or datetime.now(UTC)

    def catalog_factory(event_log: EventLog) -> ActionCatalog:
        return build_poll_catalog(event_log, broken_delete_vote=broken)

    handle = setup_logging(config["observability"], run_id=f"seed-{seed}")
    try:
        seeder = PollSeeder()
        result = generate_sequence(
            seed, catalog_factory(InMemoryEventLog()), seeder, actors, options, now=now
        )
        report = asyncio.run(
            run_diagnostics(
                catalog_factory,
                seeder,
                result.events,
                (*GENERIC_RULES, *POLL_RULES),
                disabled_rule_ids=diagnostics["disabled_rules"],
                clock=lambda: now,
            )
        )
    finally:
        shutdown_logging(handle)

    payload: dict[str, object] = {
        "command": "run",
        "broken_delete_vote": broken,
        "epoch": datetime_to_iso8601z(now),
        "result": result.to_dict(),
        "diagnostics": report.to_dict(),
        "log_path": handle.log_path.as_posix(),
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    _render_result(renderer, result, now)
    _render_report(renderer, report, verbose=renderer.verbose)
    renderer.kv("Log file", handle.log_path.as_posix())
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": profile,
        "config": config,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Retrieve or create a CLI renderer from the parsed namespace."""

    no_color = _flag(args, "no_color")
    verbose = _flag(args, "verbose")
    return create_renderer(no_color=no_color, verbose=verbose)


def _render_result(renderer: CLIRenderer, result: FuzzResult, now: datetime) -> None:
    renderer.kv("Run ID", result.run_id)
    renderer.kv("Seed", result.seed)
    renderer.kv("Epoch", datetime_to_iso8601z(now))
    renderer.kv("Best fitness", result.best_fitness)
    if result.history:
        renderer.kv("Initial worst fitness", result.initial_worst)
    if result.timed_out:
        renderer.warning("search stopped at the configured timeout")

    renderer.table(
        ("#", "Type", "Actor", "Payload"),
        [
            (str(index), event.type, event.actor_id, _truncate(event.payload, 40))
            for index, event in enumerate(result.events, start=1)
        ],
        title="Best sequence:",
    )


def _render_report(renderer: CLIRenderer, report: DiagnosticsReport, *, verbose: bool) -> None:
    if verbose:
        renderer.table(
            ("Impact", "Action", "Actors", "Added", "Deleted", "Before", "After"),
            [
                (
                    impact.id,
                    impact.action,
                    ", ".join(impact.actors),
                    str(len(impact.added)),
                    str(len(impact.deleted)),
                    str(impact.before_count),
                    str(impact.after_count),
                )
                for impact in report.impacts
            ],
            title="Impacts:",
        )

    if not report.findings:
        renderer.section("Findings:")
        renderer.text("  none")
        return

    renderer.table(
        ("Severity", "Rule", "Impact", "Detail"),
        [
            (
                renderer.severity(str(finding.severity)),
                finding.rule_id,
                finding.action_id,
                finding.detail,
            )
            for finding in report.findings
        ],
        title="Findings:",
    )
    renderer.section("Minimized run:")
    renderer.items([f"{impact.id} {impact.action}" for impact in report.minimized])
    if report.widened:
        renderer.warning("minimized run was widened to reproduce every finding")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(
    args: argparse.Namespace,
    cli_overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    try:
        loaded = load_config(config_path, profile=profile, cli_overrides=cli_overrides)
        validated = assert_valid_config(loaded, active_profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    return {key: value for key, value in validated.items()}


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


__all__ = [
    "CLIError",
    "build_parser",
    "main",
    "run_cli",
]


if __name__ == "__main__":
    raise SystemExit(run_cli())
