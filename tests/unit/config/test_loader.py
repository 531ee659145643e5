"""Effective config loading: precedence, env coercion, profiles, and path normalization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from acr_conformance.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_precedence_defaults_file_env_cli(tmp_path: Path) -> None:
    empty = _write_config(tmp_path / "empty.toml", "")
    config_path = _write_config(tmp_path / "acr.toml", "[aggregation]\nmax_concurrency = 4\n")
    env = {"ACR_AGGREGATION_MAX_CONCURRENCY": "6"}

    assert load_config(empty, environ={})["aggregation"]["max_concurrency"] == 8
    assert load_config(config_path, environ={})["aggregation"]["max_concurrency"] == 4
    assert load_config(config_path, environ=env)["aggregation"]["max_concurrency"] == 6
    cli_loaded = load_config(
        config_path,
        environ=env,
        cli_overrides={"aggregation.max_concurrency": 7},
    )
    assert cli_loaded["aggregation"]["max_concurrency"] == 7


def test_env_values_are_coerced_to_the_default_types(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "acr.toml", "")

    loaded = load_config(
        config_path,
        environ={
            "ACR_AGGREGATION_OPTIMISTIC_THRESHOLD": "0.25",
            "ACR_OBSERVABILITY_LOG_TO_STDOUT": "yes",
            "ACR_EVALUATION_RATCHET_CONFIDENCE": "off",
            "ACR_EVALUATION_CONFIDENCE_CRITICAL": "88",
            "ACR_CATALOG_PATH": "catalogs/custom.yaml",
            "UNRELATED": "ignored",
        },
    )

    assert loaded["aggregation"]["optimistic_threshold"] == 0.25
    assert loaded["observability"]["log_to_stdout"] is True
    assert loaded["evaluation"]["ratchet_confidence"] is False
    assert loaded["evaluation"]["confidence"]["critical"] == 88
    assert loaded["catalog"]["path"] == (
        tmp_path.resolve() / "catalogs" / "custom.yaml"
    ).as_posix()


@pytest.mark.parametrize(
    ("env", "match"),
    [
        ({"ACR_AGGREGATION_MAX_CONCURRENCY": "many"}, "must be an integer"),
        ({"ACR_AGGREGATION_OPTIMISTIC_THRESHOLD": "half"}, "must be a number"),
        ({"ACR_OBSERVABILITY_LOG_TO_STDOUT": "maybe"}, "must be a boolean"),
    ],
)
def test_invalid_env_coercion_names_the_variable(
    tmp_path: Path, env: dict[str, str], match: str
) -> None:
    config_path = _write_config(tmp_path / "acr.toml", "")
    with pytest.raises(ConfigLoadError, match=match) as excinfo:
        load_config(config_path, environ=env)
    assert next(iter(env)) in str(excinfo.value)


def test_env_values_are_validated_after_merge(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "acr.toml", "")
    with pytest.raises(ConfigValidationError, match="aggregation.optimistic_threshold"):
        load_config(config_path, environ={"ACR_AGGREGATION_OPTIMISTIC_THRESHOLD": "1.5"})


def test_file_errors_are_actionable(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[aggregation\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})


def test_profiles_overlay_file_values(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "acr.toml",
        "\n".join(
            [
                "[profiles.strict]",
                "evaluation = { max_findings = 2 }",
                "",
            ]
        ),
    )

    preview = load_config(config_path, profile="preview", environ={})
    assert preview["aggregation"]["default_strategy"] == "optimistic"
    assert preview["observability"]["log_level"] == "DEBUG"

    audit = load_config(config_path, environ={"ACR_PROFILE": "audit"})
    assert audit["evaluation"]["max_findings"] == 10

    custom = load_config(config_path, cli_overrides={"profile": "strict"}, environ={})
    assert custom["evaluation"]["max_findings"] == 2

    with pytest.raises(ConfigValidationError, match="profile 'nope' is not defined"):
        load_config(config_path, profile="nope", environ={})


def test_paths_are_resolved_relative_to_the_config_file(tmp_path: Path) -> None:
    absolute = (tmp_path / "elsewhere" / "catalog.yaml").as_posix()
    config_path = _write_config(
        tmp_path / "conf" / "acr.toml",
        "\n".join(
            [
                "[paths]",
                'state_db = "../state/acr.sqlite3"',
                "[catalog]",
                f'path = "{absolute}"',
                "",
            ]
        ),
    )

    loaded = load_config(config_path, environ={})
    base = config_path.resolve().parent

    assert loaded["paths"]["state_db"] == (base.parent / "state" / "acr.sqlite3").as_posix()
    assert loaded["catalog"]["path"] == absolute
    assert loaded["observability"]["log_dir"] == (base / "logs").as_posix()


def test_loading_is_deterministic(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "acr.toml", "[versioning]\nmax_allocation_retries = 5\n")

    first = load_config(config_path, environ={})
    second = load_config(config_path, environ={})

    assert first == second
    assert dump_effective_config(first) == dump_effective_config(second)
    assert json.loads(dump_effective_config(first))["versioning"]["max_allocation_retries"] == 5
