"""Structural change log between two compliance document snapshots."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Final

from acr_conformance.domain.models import (
    ChangeLogEntry,
    ComparisonSummary,
    datetime_to_iso8601z,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from acr_conformance.domain.models import AcrDocument, JSONValue

DEFAULT_REMARKS_TRUNCATE_LENGTH: Final[int] = 100
INITIAL_VERSION_REASON: Final[str] = "Initial version created"
CRITERION_REMOVED_REASON: Final[str] = "Criterion removed"

CRITERIA_FIELD_PREFIX: Final[str] = "criteria."
_CRITERION_FIELD_SUFFIXES: Final[tuple[str, ...]] = (".conformance_level", ".remarks")
_PRODUCT_INFO_FIELDS: Final[tuple[str, ...]] = (
    "name",
    "version",
    "description",
    "vendor",
    "contact_email",
    "evaluation_date",
)


def truncate_remarks(
    value: str | None, limit: int = DEFAULT_REMARKS_TRUNCATE_LENGTH
) -> str | None:
    if value is None:
        return None
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def _comparable(value: object) -> JSONValue:
    if isinstance(value, datetime):
        return datetime_to_iso8601z(value)
    if isinstance(value, Enum):
        return str(value.value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def generate_change_log(
    previous: AcrDocument | None,
    current: AcrDocument,
    reason: str | None = None,
    *,
    remarks_truncate_length: int = DEFAULT_REMARKS_TRUNCATE_LENGTH,
) -> list[ChangeLogEntry]:
    """
    Diff ``previous`` against ``current``.

    With no previous snapshot the log is a single ``document`` creation entry. Otherwise
    entries appear in this order: status, edition, product info subfields, then criteria
    in ``current`` order (added or changed), then criteria that disappeared.
    """

    if previous is None:
        return [ChangeLogEntry("document", None, "created", reason or INITIAL_VERSION_REASON)]

    changes: list[ChangeLogEntry] = []

    def record(field: str, before: object, after: object, why: str | None = reason) -> None:
        changes.append(ChangeLogEntry(field, _comparable(before), _comparable(after), why))

    if previous.status != current.status:
        record("status", previous.status, current.status)
    if previous.edition != current.edition:
        record("edition", previous.edition, current.edition)

    for name in _PRODUCT_INFO_FIELDS:
        before = _comparable(getattr(previous.product_info, name))
        after = _comparable(getattr(current.product_info, name))
        if before != after:
            record(f"product_info.{name}", before, after)

    previous_criteria = {criterion.id: criterion for criterion in previous.criteria}
    current_ids: set[str] = set()
    for criterion in current.criteria:
        current_ids.add(criterion.id)
        field = f"{CRITERIA_FIELD_PREFIX}{criterion.id}"
        earlier = previous_criteria.get(criterion.id)
        if earlier is None:
            record(field, None, "added")
            continue
        if earlier.conformance_level != criterion.conformance_level:
            record(
                f"{field}.conformance_level",
                earlier.conformance_level,
                criterion.conformance_level,
            )
        if earlier.remarks != criterion.remarks:
            record(
                f"{field}.remarks",
                truncate_remarks(earlier.remarks, remarks_truncate_length),
                truncate_remarks(criterion.remarks, remarks_truncate_length),
            )

    for criterion in previous.criteria:
        if criterion.id not in current_ids:
            record(
                f"{CRITERIA_FIELD_PREFIX}{criterion.id}",
                "existed",
                None,
                reason or CRITERION_REMOVED_REASON,
            )

    return changes


def criterion_id_from_field(field: str) -> str | None:
    """``criteria.1.4.3.remarks`` -> ``1.4.3``; non-criterion fields give ``None``."""

    if not field.startswith(CRITERIA_FIELD_PREFIX):
        return None
    remainder = field[len(CRITERIA_FIELD_PREFIX) :]
    for suffix in _CRITERION_FIELD_SUFFIXES:
        if remainder.endswith(suffix):
            return remainder[: -len(suffix)]
    return remainder


def summarize_changes(changes: Sequence[ChangeLogEntry]) -> ComparisonSummary:
    touched = {
        criterion_id
        for criterion_id in (criterion_id_from_field(entry.field) for entry in changes)
        if criterion_id is not None
    }
    return ComparisonSummary(
        fields_changed=len(changes),
        criteria_changed=len(touched),
        status_changed=any(entry.field == "status" for entry in changes),
    )


__all__ = [
    "CRITERIA_FIELD_PREFIX",
    "CRITERION_REMOVED_REASON",
    "DEFAULT_REMARKS_TRUNCATE_LENGTH",
    "INITIAL_VERSION_REASON",
    "criterion_id_from_field",
    "generate_change_log",
    "summarize_changes",
    "truncate_remarks",
]
