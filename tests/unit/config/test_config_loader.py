"""
widget-fuzz — unit tests for config loader

File: tests/unit/config/test_config_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > profile > file > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from widget_fuzz.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    epoch_from_config,
    fuzzer_options_from_config,
    load_config,
)
from widget_fuzz.generator import FuzzerOptions


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_loader_precedence_default_file_env_cli(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    defaults = load_config(environ={})
    assert defaults["fuzzer"]["seed"] == 1
    assert defaults["fuzzer"]["population_size"] == 30

    config_path = _write_config(
        tmp_path / "custom.toml",
        """
[fuzzer]
seed = 5
population_size = 20
""".strip(),
    )
    from_file = load_config(config_path, environ={})
    assert from_file["fuzzer"]["seed"] == 5
    assert from_file["fuzzer"]["population_size"] == 20
    assert from_file["fuzzer"]["generation_count"] == 30

    env = {"WIDGET_FUZZ_FUZZER_SEED": "6"}
    from_env = load_config(config_path, environ=env)
    assert from_env["fuzzer"]["seed"] == 6
    assert from_env["fuzzer"]["population_size"] == 20

    from_cli = load_config(
        config_path,
        environ=env,
        cli_overrides={"fuzzer.seed": 7, "fuzzer.generation_count": None},
    )
    assert from_cli["fuzzer"]["seed"] == 7
    assert from_cli["fuzzer"]["generation_count"] == 30


def test_default_file_in_working_directory_is_picked_up(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write_config(tmp_path / "widget_fuzz.toml", "[actors]\npool = ['ann', 'ben']\n")
    monkeypatch.chdir(tmp_path)

    config = load_config(environ={})
    assert config["actors"]["pool"] == ["ann", "ben"]


def test_profiles_apply_before_env_and_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    quick = load_config(profile="quick", environ={})
    assert quick["fuzzer"]["population_size"] == 10
    assert quick["fuzzer"]["generation_count"] == 5
    assert quick["fuzzer"]["max_sequence_length"] == 10

    from_env = load_config(environ={"WIDGET_FUZZ_PROFILE": "thorough"})
    assert from_env["fuzzer"]["generation_count"] == 100

    overridden = load_config(
        profile="quick",
        environ={"WIDGET_FUZZ_FUZZER_GENERATION_COUNT": "2"},
        cli_overrides={"fuzzer.population_size": 4},
    )
    assert overridden["fuzzer"]["population_size"] == 4
    assert overridden["fuzzer"]["generation_count"] == 2

    with pytest.raises(ConfigValidationError, match="profile 'nope' is not defined"):
        load_config(profile="nope", environ={})


def test_env_values_are_coerced_by_field_type(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(
        environ={
            "WIDGET_FUZZ_ACTORS_POOL": "ann, ben,,cy",
            "WIDGET_FUZZ_FUZZER_MUTATION_RATE": "0.5",
            "WIDGET_FUZZ_FUZZER_TIMEOUT_SECONDS": "2.5",
            "WIDGET_FUZZ_DIAGNOSTICS_BROKEN_DELETE_VOTE": "yes",
            "WIDGET_FUZZ_OBSERVABILITY_LOG_LEVEL": "DEBUG",
        }
    )

    assert config["actors"]["pool"] == ["ann", "ben", "cy"]
    assert config["fuzzer"]["mutation_rate"] == 0.5
    assert config["fuzzer"]["timeout_seconds"] == 2.5
    assert config["diagnostics"]["broken_delete_vote"] is True
    assert config["observability"]["log_level"] == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("WIDGET_FUZZ_FUZZER_SEED", "abc", "must be an integer"),
        ("WIDGET_FUZZ_FUZZER_CREATION_WEIGHT", "lots", "must be a number"),
        ("WIDGET_FUZZ_OBSERVABILITY_LOG_TO_STDOUT", "maybe", "must be a boolean"),
    ],
)
def test_bad_env_values_fail_to_load(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigLoadError, match=message):
        load_config(environ={name: value})


def test_env_values_are_still_validated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigValidationError, match="fuzzer.mutation_rate: must be <= 1.0"):
        load_config(environ={"WIDGET_FUZZ_FUZZER_MUTATION_RATE": "3"})


def test_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[fuzzer\nseed = 1\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})

    unknown = _write_config(tmp_path / "unknown.toml", "[fuzzer]\ncolour = 'red'\n")
    with pytest.raises(ConfigValidationError, match="fuzzer.colour: unknown field"):
        load_config(unknown, environ={})


def test_log_dir_is_normalized_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "nested" / "widget_fuzz.toml",
        "[observability]\nlog_dir = 'out/../runs'\n",
    )

    config = load_config(config_path, environ={})

    expected = (config_path.resolve().parent / "runs").as_posix()
    assert config["observability"]["log_dir"] == expected


def test_effective_config_dump_is_deterministic(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    first = dump_effective_config(load_config(environ={}))
    second = dump_effective_config(load_config(environ={}))

    assert first == second
    assert json.loads(first)["meta"] == {"schema_version": 1}
    assert first.startswith('{"actors":')


def test_fuzzer_options_are_built_from_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(profile="quick", environ={"WIDGET_FUZZ_FUZZER_TIMEOUT_SECONDS": "9"})

    assert fuzzer_options_from_config(config) == FuzzerOptions(
        population_size=10,
        generation_count=5,
        max_sequence_length=10,
        mutation_rate=0.35,
        creation_weight=0.35,
        timeout_seconds=9.0,
    )


def test_epoch_pins_the_run_clock(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert epoch_from_config(load_config(environ={})) is None

    config_path = _write_config(
        tmp_path / "pinned.toml", "[fuzzer]\nepoch = 2024-05-01T14:00:00+02:00\n"
    )
    from_file = load_config(config_path, environ={})
    assert from_file["fuzzer"]["epoch"] == "2024-05-01T12:00:00.000Z"
    assert epoch_from_config(from_file) == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    from_env = load_config(
        config_path, environ={"WIDGET_FUZZ_FUZZER_EPOCH": "2025-01-01T00:00:00Z"}
    )
    assert from_env["fuzzer"]["epoch"] == "2025-01-01T00:00:00.000Z"

    from_cli = load_config(
        config_path,
        environ={"WIDGET_FUZZ_FUZZER_EPOCH": "2025-01-01T00:00:00Z"},
        cli_overrides={"fuzzer.epoch": "2026-02-03T04:05:06.789+00:00"},
    )
    assert epoch_from_config(from_cli) == datetime(2026, 2, 3, 4, 5, 6, 789000, tzinfo=UTC)
    assert json.loads(dump_effective_config(from_cli))["fuzzer"]["epoch"] == (
        "2026-02-03T04:05:06.789Z"
    )


def test_cli_overrides_must_name_a_section_field(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigLoadError, match="expected 'section.field'"):
        load_config(environ={}, cli_overrides={"seed": 3})
