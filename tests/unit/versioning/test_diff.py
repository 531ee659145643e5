"""Snapshot diff ordering, truncation, and summary tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from acr_conformance.domain.models import (
    AcrEdition,
    ChangeLogEntry,
    ConformanceLevel,
    DocumentStatus,
)
from acr_conformance.versioning import (
    criterion_id_from_field,
    generate_change_log,
    summarize_changes,
    truncate_remarks,
)

from . import criterion, document

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017


def _fields(changes: list[ChangeLogEntry]) -> list[str]:
    return [entry.field for entry in changes]


def test_first_snapshot_is_a_single_creation_entry() -> None:
    assert generate_change_log(None, document()) == [
        ChangeLogEntry("document", None, "created", "Initial version created")
    ]
    assert generate_change_log(None, document(), "Imported")[0].reason == "Imported"


def test_identical_snapshots_have_no_changes() -> None:
    assert generate_change_log(document(), document()) == []


def test_entries_follow_document_then_criteria_order() -> None:
    previous = document()
    current = replace(
        previous,
        status=DocumentStatus.FINAL,
        edition=AcrEdition.WCAG,
        product_info=replace(previous.product_info, version="3.3"),
        criteria=(
            criterion("2.1.1"),
            criterion("1.1.1", ConformanceLevel.DOES_NOT_SUPPORT, "Cover image has no alt"),
        ),
    )

    changes = generate_change_log(previous, current, "Reviewed")

    assert _fields(changes) == [
        "status",
        "edition",
        "product_info.version",
        "criteria.2.1.1",
        "criteria.1.1.1.conformance_level",
        "criteria.1.1.1.remarks",
        "criteria.1.4.3",
    ]
    by_field = {entry.field: entry for entry in changes}
    assert (by_field["status"].previous_value, by_field["status"].new_value) == ("draft", "final")
    assert by_field["edition"].new_value == "VPAT2.5-WCAG"
    assert (by_field["criteria.2.1.1"].previous_value, by_field["criteria.2.1.1"].new_value) == (
        None,
        "added",
    )
    assert by_field["criteria.1.1.1.conformance_level"].new_value == "Does Not Support"
    assert by_field["criteria.1.4.3"].previous_value == "existed"
    assert by_field["criteria.1.4.3"].new_value is None
    assert {entry.reason for entry in changes} == {"Reviewed"}


def test_removed_criteria_carry_a_default_reason() -> None:
    previous = document()
    current = replace(previous, criteria=(criterion("1.1.1"),))

    [removed] = generate_change_log(previous, current)

    assert removed == ChangeLogEntry("criteria.1.4.3", "existed", None, "Criterion removed")


def test_evaluation_dates_are_compared_as_timestamps() -> None:
    previous = document()
    dated = replace(
        previous,
        product_info=replace(
            previous.product_info, evaluation_date=datetime(2026, 3, 1, tzinfo=UTC)
        ),
    )

    [entry] = generate_change_log(previous, dated)

    assert entry.field == "product_info.evaluation_date"
    assert entry.previous_value is None
    assert entry.new_value == "2026-03-01T00:00:00.000000Z"
    assert generate_change_log(dated, replace(dated)) == []


def test_long_remarks_are_truncated_in_the_log() -> None:
    previous = document(criterion("1.1.1", remarks="a" * 150))
    current = document(criterion("1.1.1", remarks="b" * 150))

    [entry] = generate_change_log(previous, current)

    assert entry.previous_value == "a" * 100 + "..."
    assert entry.new_value == "b" * 100 + "..."

    [short] = generate_change_log(previous, current, remarks_truncate_length=10)
    assert short.new_value == "bbbbbbbbbb..."


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, None), ("short", "short"), ("x" * 100, "x" * 100), ("x" * 101, "x" * 100 + "...")],
)
def test_truncate_remarks(value: str | None, expected: str | None) -> None:
    assert truncate_remarks(value) == expected


@pytest.mark.parametrize(
    ("field", "criterion_id"),
    [
        ("criteria.1.4.3.remarks", "1.4.3"),
        ("criteria.1.4.3.conformance_level", "1.4.3"),
        ("criteria.2.1.1", "2.1.1"),
        ("status", None),
        ("product_info.name", None),
    ],
)
def test_criterion_id_from_field(field: str, criterion_id: str | None) -> None:
    assert criterion_id_from_field(field) == criterion_id


def test_summary_counts_distinct_criteria() -> None:
    changes = [
        ChangeLogEntry("status", "draft", "final"),
        ChangeLogEntry("criteria.1.1.1.conformance_level", "Supports", "Does Not Support"),
        ChangeLogEntry("criteria.1.1.1.remarks", "ok", "broken"),
        ChangeLogEntry("criteria.2.1.1", None, "added"),
    ]

    summary = summarize_changes(changes)

    assert (summary.fields_changed, summary.criteria_changed, summary.status_changed) == (
        4,
        2,
        True,
    )
    assert summarize_changes([]).status_changed is False
