"""Unit tests for config schema validation and profile overlays."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from widget_fuzz.config import (
    BUILTIN_PROFILE_NAMES,
    ConfigValidationError,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _issues(config: object, **kwargs: object) -> list[tuple[str, str]]:
    result = validate_config(config, **kwargs)  # type: ignore[arg-type]
    assert not result.is_valid
    return [(issue.path, issue.message) for issue in result.issues]


def test_defaults_are_valid_and_stable() -> None:
    config = default_config()
    assert assert_valid_config(config) == config
    assert sorted(config["profiles"]) == sorted(BUILTIN_PROFILE_NAMES)

    config["fuzzer"]["seed"] = 99
    assert default_config()["fuzzer"]["seed"] == 1


def test_unknown_and_missing_fields_are_reported() -> None:
    config = merge_config(default_config(), {"fuzzer": {"colour": 1}, "extra": {}})
    assert ("fuzzer.colour", "unknown field") in _issues(config)
    assert ("extra", "unknown field") in _issues(config)

    missing = default_config()
    del missing["actors"]  # type: ignore[misc]
    assert ("actors", "missing required field") in _issues(missing)


def test_schema_version_mismatch_carries_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": 2}})
    ((path, message),) = _issues(config)
    assert path == "meta.schema_version"
    assert message == migration_guidance(2)
    assert "newer than supported" in message


@pytest.mark.parametrize(
    ("overlay", "expected"),
    [
        ({"fuzzer": {"mutation_rate": 1.5}}, ("fuzzer.mutation_rate", "must be <= 1.0")),
        ({"fuzzer": {"population_size": 0}}, ("fuzzer.population_size", "must be >= 1")),
        ({"fuzzer": {"seed": True}}, ("fuzzer.seed", "expected integer, got bool")),
        ({"fuzzer": {"timeout_seconds": 0}}, ("fuzzer.timeout_seconds", "must be > 0")),
        (
            {"fuzzer": {"epoch": "2024-05-01T12:00:00"}},
            ("fuzzer.epoch", "timestamp must include a UTC offset"),
        ),
        (
            {"fuzzer": {"epoch": "yesterday"}},
            ("fuzzer.epoch", "invalid ISO-8601 timestamp 'yesterday'"),
        ),
        ({"fuzzer": {"epoch": 1714564800}}, ("fuzzer.epoch", "expected timestamp, got int")),
        ({"actors": {"pool": ["a", "a"]}}, ("actors.pool", "actor ids must be unique")),
        ({"actors": {"pool": []}}, ("actors.pool", "must contain at least one actor id")),
        (
            {"observability": {"log_level": "LOUD"}},
            (
                "observability.log_level",
                "invalid value 'LOUD'; expected one of: DEBUG, ERROR, INFO, WARNING",
            ),
        ),
        (
            {"diagnostics": {"broken_delete_vote": "yes"}},
            ("diagnostics.broken_delete_vote", "expected boolean, got str"),
        ),
    ],
)
def test_field_validation(overlay: dict[str, object], expected: tuple[str, str]) -> None:
    assert expected in _issues(merge_config(default_config(), overlay))


def test_disabled_rules_are_sorted_and_deduplicated() -> None:
    config = merge_config(
        default_config(), {"diagnostics": {"disabled_rules": ["no-impact", "empty-record", "no-impact"]}}
    )
    assert assert_valid_config(config)["diagnostics"]["disabled_rules"] == [
        "empty-record",
        "no-impact",
    ]


def test_profiles_are_validated_and_applied() -> None:
    config = default_config()
    quick = apply_profile_overlay(config, "quick")
    assert quick["fuzzer"]["population_size"] == 10
    assert apply_profile_overlay(config, None) == config

    with pytest.raises(ConfigValidationError, match="profile 'nope' is not defined"):
        apply_profile_overlay(config, "nope")

    assert ("profiles", "profile 'nope' is not defined") in _issues(config, active_profile="nope")

    bad_name = merge_config(config, {"profiles": {"Fast": {}}})
    assert ("profiles.Fast", "profile name must match ^[a-z][a-z0-9_-]*$") in _issues(bad_name)

    bad_overlay = merge_config(config, {"profiles": {"fast": {"fuzzer": {"mutation_rate": 2}}}})
    assert ("profiles.fast.fuzzer.mutation_rate", "must be <= 1.0") in _issues(bad_overlay)


def test_validation_error_renders_every_issue() -> None:
    config = merge_config(default_config(), {"fuzzer": {"colour": 1, "seed": -1}})
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    assert str(excinfo.value) == (
        "invalid config:\n- fuzzer.colour: unknown field\n- fuzzer.seed: must be >= 0"
    )
    assert len(excinfo.value.issues) == 2


@pytest.mark.parametrize(
    "epoch",
    [
        "2024-05-01T14:00:00+02:00",
        "2024-05-01T12:00:00Z",
        datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        datetime(2024, 5, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5))),
    ],
)
def test_epoch_is_normalized_to_utc_milliseconds(epoch: object) -> None:
    config = assert_valid_config(merge_config(default_config(), {"fuzzer": {"epoch": epoch}}))
    assert config["fuzzer"]["epoch"] == "2024-05-01T12:00:00.000Z"
    # Normalized output validates to itself.
    assert assert_valid_config(config) == config
