"""
Effective configuration for one process.

Layers are applied in order, each overriding the previous one:

1. built-in defaults;
2. the TOML file (``acr_conformance.toml`` unless a path is given);
3. the selected profile overlay (``profile=``, ``cli_overrides["profile"]`` or ``ACR_PROFILE``);
4. ``ACR_<SECTION>_<KEY>`` environment variables, coerced to the default's type;
5. dotted CLI overrides such as ``{"aggregation.max_concurrency": 4}``.

The file layer is validated on its own so a broken file is reported against its own
contents; the final result is validated again, and its path fields are resolved
relative to the directory holding the config file.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from acr_conformance.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)
from acr_conformance.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

# Settable from the environment even though the defaults leave them unset.
_EXTRA_ENV_KEYS: Final[dict[tuple[str, ...], type]] = {("catalog", "path"): str}


class ConfigLoadError(ValueError):
    """The config file could not be read, or an override could not be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    explicit = config_path is not None
    path = Path(config_path if explicit else Path.cwd() / DEFAULT_CONFIG_FILE)
    path = path.expanduser().resolve()
    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})
    selected = _pick_profile(profile, overrides.pop("profile", None), env)

    config = assert_valid_config(merge_config(default_config(), _read_toml(path, explicit)))
    if selected is not None:
        config = apply_profile_overlay(config, selected)
    config = merge_config(config, _env_layer(config, env))
    config = merge_config(config, _nest(overrides))
    config = assert_valid_config(config, active_profile=selected)
    return normalize_paths(config, base_dir=path.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Copy of ``config`` with every configured path made absolute against ``base_dir``."""

    resolved = merge_config({}, config)
    for key in PATH_FIELDS:
        section = resolved.get(key[0])
        if isinstance(section, dict) and isinstance(section.get(key[1]), str):
            raw = Path(os.path.expandvars(section[key[1]])).expanduser()
            absolute = raw if raw.is_absolute() else base_dir / raw
            section[key[1]] = Path(os.path.normpath(absolute)).as_posix()
    return resolved


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, required: bool) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        if required:
            raise ConfigLoadError(f"config file not found: {path}") from exc
        return {}
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc


def _pick_profile(
    explicit: str | None, from_cli: object, env: Mapping[str, str]
) -> str | None:
    for candidate in (explicit, from_cli, env.get(f"{ENV_PREFIX}PROFILE")):
        if candidate is None:
            continue
        if not isinstance(candidate, str):
            raise ConfigLoadError(f"profile must be a string, got {type(candidate).__name__}")
        return candidate.strip() or None
    return None


def _scalar_keys(
    payload: Mapping[str, object], prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], type]]:
    for key, value in payload.items():
        if not prefix and key == "profiles":
            continue
        if isinstance(value, Mapping):
            yield from _scalar_keys(value, (*prefix, key))
        elif isinstance(value, bool | int | float | str):
            yield (*prefix, key), type(value)


def _env_layer(config: Mapping[str, object], env: Mapping[str, str]) -> dict[str, Any]:
    typed = {**_EXTRA_ENV_KEYS, **dict(_scalar_keys(config))}
    layer: dict[str, Any] = {}
    for key in sorted(typed):
        name = ENV_PREFIX + "_".join(part.upper() for part in key)
        if name in env:
            _put(layer, key, _coerce(env[name].strip(), typed[key], f"{name} -> {'.'.join(key)}"))
    return layer


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY or lowered in _FALSY:
        return lowered in _TRUTHY
    raise ValueError(raw)


_COERCERS: Final[dict[type, tuple[Callable[[str], object], str]]] = {
    bool: (_parse_bool, "a boolean (true/false/1/0/yes/no)"),
    int: (int, "an integer"),
    float: (float, "a number"),
    str: (str, "a string"),
}


def _coerce(raw: str, kind: type, label: str) -> object:
    parse, expected = _COERCERS[kind]
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigLoadError(f"{label} must be {expected}, got {raw!r}") from exc


def _nest(dotted: Mapping[str, object]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for key in sorted(dotted):
        parts = tuple(part for part in key.split(".") if part)
        if not parts:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        _put(nested, parts, dotted[key])
    return nested


def _put(target: dict[str, Any], key: tuple[str, ...], value: object) -> None:
    node = target
    for part in key[:-1]:
        node = node.setdefault(part, {})
    node[key[-1]] = value


__all__ = [
    "ConfigLoadError",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "normalize_paths",
]
