"""
Success-criterion catalog shipped with the package.

The catalog is a YAML resource listing every success criterion and the ordered
criterion subset each VPAT edition reports on. It is parsed once per path and
cached; all indexes are read-only mappings.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

import yaml

from acr_conformance.domain.models import CriterionLevel, SuccessCriterion


class CatalogError(ValueError):
    """Raised when the criterion catalog resource is malformed."""


def _validate_non_empty_str(value: object, field_name: str) -> str:
    if not isinstance(value, str):
        raise CatalogError(f"{field_name} must be a string")
    parsed = value.strip()
    if not parsed:
        raise CatalogError(f"{field_name} cannot be empty")
    return parsed


def _as_mapping(value: object, field_name: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise CatalogError(f"{field_name} must be an object")
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise CatalogError(f"{field_name} keys must be strings")
        out[key] = item
    return out


def _as_sequence(value: object, field_name: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise CatalogError(f"{field_name} must be an array")


def _str_tuple(value: object, field_name: str) -> tuple[str, ...]:
    return tuple(
        _validate_non_empty_str(item, f"{field_name}[{index}]")
        for index, item in enumerate(_as_sequence(value, field_name))
    )


@dataclass(frozen=True, slots=True)
class EditionInfo:
    """One VPAT edition and the ordered criterion ids it reports on."""

    code: str
    name: str
    description: str
    standards: tuple[str, ...]
    recommended: bool
    criteria_ids: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", _validate_non_empty_str(self.code, "EditionInfo.code"))
        object.__setattr__(self, "name", _validate_non_empty_str(self.name, "EditionInfo.name"))
        if len(set(self.criteria_ids)) != len(self.criteria_ids):
            raise CatalogError(f"edition {self.code!r} lists duplicate criterion ids")

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "standards": list(self.standards),
            "recommended": self.recommended,
            "criteria_count": len(self.criteria_ids),
        }


@dataclass(frozen=True, slots=True)
class CriteriaCatalog:
    """File-backed, read-only success-criterion catalog keyed by edition."""

    version: str
    last_updated: str
    criteria: tuple[SuccessCriterion, ...]
    editions: tuple[EditionInfo, ...]
    fallback_levels: frozenset[CriterionLevel] = frozenset({CriterionLevel.A, CriterionLevel.AA})
    _by_id: Mapping[str, SuccessCriterion] = field(init=False, repr=False, compare=False)
    _by_edition: Mapping[str, EditionInfo] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "version", _validate_non_empty_str(self.version, "CriteriaCatalog.version")
        )
        if not self.criteria:
            raise CatalogError("CriteriaCatalog.criteria cannot be empty")

        by_id: dict[str, SuccessCriterion] = {}
        for entry in self.criteria:
            if entry.id in by_id:
                raise CatalogError(f"duplicate criterion id {entry.id!r}")
            by_id[entry.id] = entry

        by_edition: dict[str, EditionInfo] = {}
        for edition in self.editions:
            if edition.code in by_edition:
                raise CatalogError(f"duplicate edition code {edition.code!r}")
            unknown = [item for item in edition.criteria_ids if item not in by_id]
            if unknown:
                raise CatalogError(
                    f"edition {edition.code!r} references unknown criteria: {unknown}"
                )
            by_edition[edition.code] = edition

        object.__setattr__(self, "_by_id", MappingProxyType(by_id))
        object.__setattr__(self, "_by_edition", MappingProxyType(by_edition))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> CriteriaCatalog:
        criteria_raw = _as_sequence(payload.get("criteria"), "criteria")
        criteria: list[SuccessCriterion] = []
        for index, item in enumerate(criteria_raw):
            item_map = _as_mapping(item, f"criteria[{index}]")
            try:
                criteria.append(SuccessCriterion.from_dict(item_map))
            except ValueError as exc:
                raise CatalogError(f"criteria[{index}]: {exc}") from exc

        editions_raw = _as_sequence(payload.get("editions", ()), "editions")
        editions: list[EditionInfo] = []
        for index, item in enumerate(editions_raw):
            item_map = _as_mapping(item, f"editions[{index}]")
            editions.append(
                EditionInfo(
                    code=_validate_non_empty_str(item_map.get("code"), f"editions[{index}].code"),
                    name=_validate_non_empty_str(item_map.get("name"), f"editions[{index}].name"),
                    description=str(item_map.get("description", "")).strip(),
                    standards=_str_tuple(
                        item_map.get("standards", ()), f"editions[{index}].standards"
                    ),
                    recommended=bool(item_map.get("recommended", False)),
                    criteria_ids=_str_tuple(
                        item_map.get("criteria_ids", ()), f"editions[{index}].criteria_ids"
                    ),
                )
            )

        fallback_raw = payload.get("fallback_levels", ("A", "AA"))
        fallback: set[CriterionLevel] = set()
        for index, level in enumerate(_as_sequence(fallback_raw, "fallback_levels")):
            try:
                fallback.add(CriterionLevel(str(level)))
            except ValueError as exc:
                raise CatalogError(f"fallback_levels[{index}]: unknown level {level!r}") from exc

        return cls(
            version=_validate_non_empty_str(str(payload.get("version", "")), "version"),
            last_updated=str(payload.get("last_updated", "")),
            criteria=tuple(criteria),
            editions=tuple(editions),
            fallback_levels=frozenset(fallback),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> CriteriaCatalog:
        candidate = Path(path).expanduser().resolve()
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise CatalogError(f"invalid criterion catalog YAML in {candidate}: {exc}") from exc
        except OSError as exc:
            raise CatalogError(f"unable to read criterion catalog {candidate}: {exc}") from exc

        return cls.from_mapping(_as_mapping(payload, "catalog"))

    def get(self, criterion_id: str) -> SuccessCriterion | None:
        return self._by_id.get(criterion_id)

    def require(self, criterion_id: str) -> SuccessCriterion:
        found = self.get(criterion_id)
        if found is None:
            raise KeyError(f"unknown criterion {criterion_id!r}")
        return found

    def level_for(self, criterion_id: str) -> CriterionLevel:
        found = self.get(criterion_id)
        if found is None:
            return CriterionLevel.A
        return CriterionLevel(found.level)

    def edition_info(self, code: str) -> EditionInfo | None:
        return self._by_edition.get(code)

    @property
    def recommended_edition(self) -> EditionInfo | None:
        for edition in self.editions:
            if edition.recommended:
                return edition
        return None

    def fallback_criteria(self) -> tuple[SuccessCriterion, ...]:
        return tuple(item for item in self.criteria if item.level in self.fallback_levels)

    def criteria_for_edition(self, edition: str | None) -> tuple[SuccessCriterion, ...]:
        """
        Return the ordered criteria an edition reports on.

        Unknown or missing edition codes fall back to the A+AA subset. A known edition
        that lists no criteria yields an empty tuple.
        """

        if edition is None:
            return self.fallback_criteria()
        info = self._by_edition.get(edition)
        if info is None:
            return self.fallback_criteria()
        return tuple(self._by_id[criterion_id] for criterion_id in info.criteria_ids)


def _bundled_catalog_path() -> Path:
    return Path(__file__).resolve().with_name("criteria_catalog.yaml")


@lru_cache(maxsize=8)
def load_criteria_catalog(path: str | Path | None = None) -> CriteriaCatalog:
    """Load the criterion catalog from disk with deterministic caching."""

    resolved = _bundled_catalog_path() if path is None else Path(path).expanduser().resolve()
    return CriteriaCatalog.from_file(resolved)


__all__ = [
    "CatalogError",
    "CriteriaCatalog",
    "EditionInfo",
    "load_criteria_catalog",
]
