"""
Configuration defaults, validation and redaction.

Validation never stops at the first problem: every issue is collected with its dotted
path and reported together through :class:`ConfigValidationError`.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from acr_conformance.constants import CONFIG_SCHEMA_VERSION, STATE_DB_FILE

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("audit", "preview")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
AGGREGATION_STRATEGIES: Final[tuple[str, ...]] = ("conservative", "optimistic")
CONFIDENCE_KEYS: Final[tuple[str, ...]] = (
    "no_issues",
    "all_fixed",
    "critical",
    "serious",
    "moderate",
    "unknown",
    "minor_only",
)

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials", "auth"}
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Config paths resolved relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "state_db"),
    ("catalog", "path"),
    ("observability", "log_dir"),
)

_OVERLAY_SECTIONS: Final[tuple[str, ...]] = (
    "aggregation",
    "catalog",
    "evaluation",
    "observability",
    "paths",
    "versioning",
)


class MetaConfig(TypedDict):
    schema_version: int


class ConfidenceConfig(TypedDict):
    no_issues: int
    all_fixed: int
    critical: int
    serious: int
    moderate: int
    unknown: int
    minor_only: int


class EvaluationConfig(TypedDict):
    confidence: ConfidenceConfig
    max_findings: int
    max_remediation_bonus: int
    ratchet_confidence: bool


class AggregationConfig(TypedDict):
    default_strategy: Literal["conservative", "optimistic"]
    optimistic_threshold: float
    max_issues_per_document: int
    max_concurrency: int


class VersioningConfig(TypedDict):
    remarks_truncate_length: int
    max_allocation_retries: int


class CatalogConfig(TypedDict):
    path: NotRequired[str]


class PathsConfig(TypedDict):
    state_db: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    aggregation: dict[str, object]
    catalog: dict[str, object]
    evaluation: dict[str, object]
    observability: dict[str, object]
    paths: dict[str, object]
    versioning: dict[str, object]


class AcrConfig(TypedDict):
    meta: MetaConfig
    evaluation: EvaluationConfig
    aggregation: AggregationConfig
    versioning: VersioningConfig
    catalog: CatalogConfig
    paths: PathsConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[AcrConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "evaluation": {
        "confidence": {
            "no_issues": 75,
            "all_fixed": 95,
            "critical": 90,
            "serious": 80,
            "moderate": 70,
            "unknown": 60,
            "minor_only": 85,
        },
        "max_findings": 5,
        "max_remediation_bonus": 15,
        "ratchet_confidence": True,
    },
    "aggregation": {
        "default_strategy": "conservative",
        "optimistic_threshold": 0.5,
        "max_issues_per_document": 3,
        "max_concurrency": 8,
    },
    "versioning": {
        "remarks_truncate_length": 100,
        "max_allocation_retries": 3,
    },
    "catalog": {},
    "paths": {"state_db": str(STATE_DB_FILE)},
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs/",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
    "profiles": {
        "audit": {
            "aggregation": {"default_strategy": "conservative"},
            "evaluation": {"max_findings": 10},
        },
        "preview": {
            "aggregation": {"default_strategy": "optimistic"},
            "observability": {"log_level": "DEBUG", "log_to_stdout": True},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result; ``config`` is set only when there are no issues."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> AcrConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade acr_conformance.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the acr-conformance package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply the named overlay from ``profiles`` and re-validate the result."""

    materialized = _deep_copy_mapping(config)
    selected = (profile or "").strip()
    if not selected:
        return materialized

    profiles = materialized.get("profiles")
    overlay = profiles.get(selected) if isinstance(profiles, Mapping) else None
    if overlay is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay), active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    selected = active_profile.strip() if isinstance(active_profile, str) else ""
    if selected:
        profiles = normalized.get("profiles", {})
        if selected not in profiles:
            issues.add("profiles", f"profile {selected!r} is not defined")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a copy with secret-looking keys replaced by ``<redacted>``."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config)
    return redacted if isinstance(redacted, dict) else {}


_Validator = Callable[[Mapping[str, object], str, _IssueCollector, bool], dict[str, Any]]


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators: dict[str, _Validator] = {
        "meta": _validate_meta,
        "evaluation": _validate_evaluation,
        "aggregation": _validate_aggregation,
        "versioning": _validate_versioning,
        "catalog": _validate_catalog,
        "paths": _validate_paths,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, {*validators, "profiles"}, "", issues)
    _require_keys(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for key, validator in validators.items():
        section = payload.get(key)
        if section is None:
            continue
        section_obj = _as_object(section, key, issues)
        if section_obj is not None:
            out[key] = validator(section_obj, key, issues, False)

    profiles_raw = payload.get("profiles", {})
    profiles_obj = _as_object(profiles_raw, "profiles", issues)
    out["profiles"] = {} if profiles_obj is None else _validate_profiles(profiles_obj, issues)
    return out


def _take(
    payload: Mapping[str, object],
    key: str,
    path: str,
    out: dict[str, Any],
    parse: Callable[[object, str], object | None],
) -> None:
    if key not in payload:
        return
    parsed = parse(payload[key], _join(path, key))
    if parsed is not None:
        out[key] = parsed


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    if not partial:
        _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    _take(payload, "schema_version", path, out, lambda v, p: _as_int(v, p, issues, minimum=1))
    version = out.get("schema_version")
    if version is not None and version != ConfigSchemaVersion:
        issues.add(_join(path, "schema_version"), migration_guidance(version))
    return out


def _validate_evaluation(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"confidence", "max_findings", "max_remediation_bonus", "ratchet_confidence"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "confidence" in payload:
        confidence_path = _join(path, "confidence")
        confidence = _as_object(payload["confidence"], confidence_path, issues)
        if confidence is not None:
            _reject_unknown_keys(confidence, set(CONFIDENCE_KEYS), confidence_path, issues)
            if not partial:
                _require_keys(confidence, set(CONFIDENCE_KEYS), confidence_path, issues)
            parsed: dict[str, Any] = {}
            for key in CONFIDENCE_KEYS:
                _take(
                    confidence,
                    key,
                    confidence_path,
                    parsed,
                    lambda v, p: _as_int(v, p, issues, minimum=0, maximum=100),
                )
            out["confidence"] = parsed
    _take(payload, "max_findings", path, out, lambda v, p: _as_int(v, p, issues, minimum=1))
    _take(
        payload,
        "max_remediation_bonus",
        path,
        out,
        lambda v, p: _as_int(v, p, issues, minimum=0, maximum=100),
    )
    _take(payload, "ratchet_confidence", path, out, lambda v, p: _as_bool(v, p, issues))
    return out


def _validate_aggregation(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {
        "default_strategy",
        "optimistic_threshold",
        "max_issues_per_document",
        "max_concurrency",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    _take(
        payload,
        "default_strategy",
        path,
        out,
        lambda v, p: _as_enum(v, p, issues, allowed_values=AGGREGATION_STRATEGIES),
    )
    _take(
        payload,
        "optimistic_threshold",
        path,
        out,
        lambda v, p: _as_float(v, p, issues, minimum=0.0, maximum=1.0),
    )
    _take(
        payload, "max_issues_per_document", path, out, lambda v, p: _as_int(v, p, issues, minimum=1)
    )
    _take(payload, "max_concurrency", path, out, lambda v, p: _as_int(v, p, issues, minimum=1))
    return out


def _validate_versioning(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"remarks_truncate_length", "max_allocation_retries"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    _take(
        payload, "remarks_truncate_length", path, out, lambda v, p: _as_int(v, p, issues, minimum=1)
    )
    _take(
        payload, "max_allocation_retries", path, out, lambda v, p: _as_int(v, p, issues, minimum=0)
    )
    return out


def _validate_catalog(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    del partial
    _reject_unknown_keys(payload, {"path"}, path, issues)
    out: dict[str, Any] = {}
    _take(payload, "path", path, out, lambda v, p: _as_path_text(v, p, issues))
    return out


def _validate_paths(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"state_db"}, path, issues)
    if not partial:
        _require_keys(payload, {"state_db"}, path, issues)
    out: dict[str, Any] = {}
    _take(payload, "state_db", path, out, lambda v, p: _as_path_text(v, p, issues))
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, partial: bool
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    _take(
        payload,
        "log_level",
        path,
        out,
        lambda v, p: _as_enum(v, p, issues, allowed_values=LOG_LEVELS),
    )
    _take(payload, "log_dir", path, out, lambda v, p: _as_path_text(v, p, issues))
    _take(payload, "log_to_stdout", path, out, lambda v, p: _as_bool(v, p, issues))
    _take(payload, "redact_secrets", path, out, lambda v, p: _as_bool(v, p, issues))
    return out


_SECTION_VALIDATORS: Final[dict[str, _Validator]] = {
    "aggregation": _validate_aggregation,
    "catalog": _validate_catalog,
    "evaluation": _validate_evaluation,
    "observability": _validate_observability,
    "paths": _validate_paths,
    "versioning": _validate_versioning,
}


def _validate_profiles(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        profile_path = _join("profiles", name)
        if not _PROFILE_NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = _as_object(payload[name], profile_path, issues)
        if overlay is None:
            continue
        _reject_unknown_keys(overlay, set(_OVERLAY_SECTIONS), profile_path, issues)
        parsed: dict[str, Any] = {}
        for section in _OVERLAY_SECTIONS:
            if section not in overlay:
                continue
            section_path = _join(profile_path, section)
            section_obj = _as_object(overlay[section], section_path, issues)
            if section_obj is not None:
                parsed[section] = _SECTION_VALIDATORS[section](
                    section_obj, section_path, issues, True
                )
        out[name] = parsed
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is not None and "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and value > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(key_path, "embedded secret values are forbidden in config files")
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    return any(token in _SENSITIVE_KEY_TOKENS for token in normalized.split("_") if token)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    return key if not path else f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = _deep_copy_mapping(existing) if isinstance(existing, Mapping) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


def _redacts(key: str) -> bool:
    return not _normalize_key(key).startswith("redact_") and _looks_sensitive_key(key)


def _redact_value(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            key: "<redacted>" if _redacts(str(key)) else _redact_value(item)
            for key, item in sorted(value.items())
        }
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    return value


__all__ = [
    "AGGREGATION_STRATEGIES",
    "BUILTIN_PROFILE_NAMES",
    "CONFIDENCE_KEYS",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "AcrConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
