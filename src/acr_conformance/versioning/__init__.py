"""Immutable version history and snapshot diffs."""

from acr_conformance.versioning.diff import (
    criterion_id_from_field,
    generate_change_log,
    summarize_changes,
    truncate_remarks,
)
from acr_conformance.versioning.service import DEFAULT_MAX_ALLOCATION_RETRIES, VersionDiffEngine

__all__ = [
    "DEFAULT_MAX_ALLOCATION_RETRIES",
    "VersionDiffEngine",
    "criterion_id_from_field",
    "generate_change_log",
    "summarize_changes",
    "truncate_remarks",
]
