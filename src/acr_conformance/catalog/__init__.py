"""Static success-criterion catalog: criteria, editions, and fallback subsets."""

from acr_conformance.catalog.criteria_catalog import (
    CatalogError,
    CriteriaCatalog,
    EditionInfo,
    load_criteria_catalog,
)

__all__ = [
    "CatalogError",
    "CriteriaCatalog",
    "EditionInfo",
    "load_criteria_catalog",
]
