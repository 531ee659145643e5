"""Builders for criterion catalog tests."""

from __future__ import annotations

from typing import Any


def minimal_catalog_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "version": "9.9.9",
        "last_updated": "2026-01-01",
        "fallback_levels": ["A"],
        "editions": [
            {
                "code": "TINY",
                "name": "Tiny Edition",
                "description": "Two criteria",
                "standards": ["WCAG 2.1"],
                "recommended": True,
                "criteria_ids": ["1.4.3", "1.1.1"],
            },
            {"code": "EMPTY", "name": "Empty Edition", "criteria_ids": []},
        ],
        "criteria": [
            {"id": "1.1.1", "name": "Non-text Content", "level": "A", "section": "Perceivable"},
            {"id": "1.4.3", "name": "Contrast (Minimum)", "level": "AA", "section": "Perceivable"},
            {
                "id": "1.4.6",
                "name": "Contrast (Enhanced)",
                "level": "AAA",
                "section": "Perceivable",
            },
        ],
    }
    payload.update(overrides)
    return payload
