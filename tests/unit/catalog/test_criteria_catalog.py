"""Unit tests for the bundled success-criterion catalog and its edition lookups."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from acr_conformance.catalog import CatalogError, CriteriaCatalog, load_criteria_catalog
from acr_conformance.domain.models import AcrEdition, CriterionLevel

from . import minimal_catalog_payload


@pytest.fixture(scope="module")
def catalog() -> CriteriaCatalog:
    return load_criteria_catalog()


def test_bundled_catalog_is_cached_and_versioned(catalog: CriteriaCatalog) -> None:
    assert load_criteria_catalog() is catalog
    assert catalog.version == "2.1.0"
    assert {edition.code for edition in catalog.editions} == {item.value for item in AcrEdition}


def test_bundled_editions_have_expected_sizes(catalog: CriteriaCatalog) -> None:
    sizes = {
        code: len(catalog.criteria_for_edition(code))
        for code in ("VPAT2.5-508", "VPAT2.5-WCAG", "VPAT2.5-EU", "VPAT2.5-INT")
    }
    assert sizes == {
        "VPAT2.5-508": 36,
        "VPAT2.5-WCAG": 78,
        "VPAT2.5-EU": 57,
        "VPAT2.5-INT": 85,
    }


def test_international_edition_is_the_single_recommended_one(catalog: CriteriaCatalog) -> None:
    recommended = [edition for edition in catalog.editions if edition.recommended]
    assert [edition.code for edition in recommended] == ["VPAT2.5-INT"]
    assert catalog.recommended_edition is recommended[0]

    payload = recommended[0].to_dict()
    assert payload["criteria_count"] == 85
    assert payload["standards"] == ["Section 508", "EN 301 549", "WCAG 2.1"]


def test_eu_edition_contains_en_clauses_at_eu_level(catalog: CriteriaCatalog) -> None:
    eu_ids = [criterion.id for criterion in catalog.criteria_for_edition("VPAT2.5-EU")]
    assert eu_ids[-7:] == ["EN-5.2", "EN-5.3", "EN-5.4", "EN-6.1", "EN-7.1", "EN-7.2", "EN-7.3"]
    assert catalog.level_for("EN-6.1") is CriterionLevel.EU


def test_edition_order_is_preserved(catalog: CriteriaCatalog) -> None:
    ids_508 = [criterion.id for criterion in catalog.criteria_for_edition("VPAT2.5-508")]
    assert ids_508[:3] == ["1.1.1", "1.2.1", "1.2.2"]
    assert ids_508[-2:] == ["3.3.3", "3.3.4"]


@pytest.mark.parametrize("edition", [None, "VPAT9-UNKNOWN", ""])
def test_unknown_or_missing_edition_falls_back_to_a_and_aa(
    catalog: CriteriaCatalog, edition: str | None
) -> None:
    fallback = catalog.criteria_for_edition(edition)
    assert len(fallback) == 50
    assert {criterion.level for criterion in fallback} == {CriterionLevel.A, CriterionLevel.AA}


def test_lookup_helpers(catalog: CriteriaCatalog) -> None:
    assert catalog.require("1.4.3").name == "Contrast (Minimum)"
    assert catalog.get("9.9.9") is None
    assert catalog.level_for("9.9.9") is CriterionLevel.A
    with pytest.raises(KeyError, match="unknown criterion"):
        catalog.require("9.9.9")


def test_custom_catalog_file_and_empty_edition(tmp_path: Path) -> None:
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump(minimal_catalog_payload()), encoding="utf-8")

    custom = load_criteria_catalog(path)

    assert custom.version == "9.9.9"
    assert [item.id for item in custom.criteria_for_edition("TINY")] == ["1.4.3", "1.1.1"]
    assert custom.criteria_for_edition("EMPTY") == ()
    assert [item.id for item in custom.criteria_for_edition(None)] == ["1.1.1"]


def test_catalog_rejects_unknown_edition_references() -> None:
    payload = minimal_catalog_payload(
        editions=[{"code": "BAD", "name": "Bad", "criteria_ids": ["1.1.1", "7.7.7"]}]
    )
    with pytest.raises(CatalogError, match="references unknown criteria"):
        CriteriaCatalog.from_mapping(payload)


def test_catalog_rejects_duplicates_and_bad_levels() -> None:
    duplicated = minimal_catalog_payload()
    duplicated["criteria"] = [*duplicated["criteria"], duplicated["criteria"][0]]
    with pytest.raises(CatalogError, match="duplicate criterion id"):
        CriteriaCatalog.from_mapping(duplicated)

    with pytest.raises(CatalogError, match="fallback_levels"):
        CriteriaCatalog.from_mapping(minimal_catalog_payload(fallback_levels=["AAAA"]))

    with pytest.raises(CatalogError, match=r"criteria\[0\]"):
        CriteriaCatalog.from_mapping(
            minimal_catalog_payload(criteria=[{"id": "1.1.1", "name": "x", "level": "Z"}])
        )


def test_catalog_reports_unreadable_or_invalid_files(tmp_path: Path) -> None:
    with pytest.raises(CatalogError, match="unable to read"):
        CriteriaCatalog.from_file(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("criteria: [unclosed", encoding="utf-8")
    with pytest.raises(CatalogError, match="invalid criterion catalog YAML"):
        CriteriaCatalog.from_file(broken)
