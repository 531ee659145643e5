"""Configuration loading and validation."""

from acr_conformance.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    load_config,
    normalize_paths,
)
from acr_conformance.config.schema import (
    DEFAULT_CONFIG,
    AcrConfig,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "AcrConfig",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]
