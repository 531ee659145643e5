"""Append-only version store contract, exercised against both backends."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

import pytest

from acr_conformance.persistence import (
    AcrVersionRepo,
    InMemoryVersionStore,
    StateDB,
    VersionConflictError,
    VersionStore,
)

from . import make_version, next_version

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> VersionStore:
    if request.param == "memory":
        return InMemoryVersionStore()
    return AcrVersionRepo(StateDB(tmp_path / "state" / "acr.sqlite3"))


def test_backends_satisfy_the_protocol(store: VersionStore) -> None:
    assert isinstance(store, VersionStore)


def test_insert_get_latest_and_list(store: VersionStore) -> None:
    for number in (1, 2, 3):
        store.insert(make_version(number))
    store.insert(make_version(1, acr_id="acr-other"))

    fetched = store.get("acr-guide", 2)
    assert fetched is not None
    assert fetched.to_dict() == make_version(2).to_dict()

    latest = store.latest("acr-guide")
    assert latest is not None
    assert latest.version == 3
    assert [item.version for item in store.list_versions("acr-guide")] == [1, 2, 3]
    assert store.count("acr-guide") == 3
    assert store.count("acr-other") == 1


def test_missing_lookups_return_empty_results(store: VersionStore) -> None:
    assert store.get("acr-guide", 1) is None
    assert store.latest("acr-guide") is None
    assert store.list_versions("acr-guide") == []
    assert store.count("acr-guide") == 0


def test_duplicate_version_is_a_conflict(store: VersionStore) -> None:
    store.insert(make_version(1))

    with pytest.raises(VersionConflictError) as excinfo:
        store.insert(make_version(1, created_by="reviewer-b"))
    assert (excinfo.value.acr_id, excinfo.value.version) == ("acr-guide", 1)

    kept = store.get("acr-guide", 1)
    assert kept is not None
    assert kept.created_by == "reviewer-a"


def test_append_next_allocates_consecutive_numbers(store: VersionStore) -> None:
    first = store.append_next("acr-guide", next_version())
    second = store.append_next("acr-guide", next_version())

    assert (first.version, second.version) == (1, 2)
    assert store.count("acr-guide") == 2


def test_append_next_rejects_a_builder_that_skips_numbers(store: VersionStore) -> None:
    store.insert(make_version(1))

    with pytest.raises(ValueError, match="built version must be 2, got 5"):
        store.append_next("acr-guide", lambda previous: make_version(5))
    with pytest.raises(ValueError, match="belongs to 'acr-other'"):
        store.append_next("acr-guide", lambda previous: make_version(2, acr_id="acr-other"))

    assert store.count("acr-guide") == 1


def test_delete_all_purges_one_document(store: VersionStore) -> None:
    store.insert(make_version(1))
    store.insert(make_version(2))
    store.insert(make_version(1, acr_id="acr-other"))

    assert store.delete_all("acr-guide") == 2
    assert store.delete_all("acr-guide") == 0
    assert store.count("acr-other") == 1


def test_concurrent_writers_never_share_a_number(store: VersionStore) -> None:
    errors: list[BaseException] = []

    def writer(name: str) -> None:
        try:
            for _ in range(5):
                store.append_next("acr-guide", next_version(created_by=name))
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [
        threading.Thread(target=writer, args=(f"writer-{index}",), daemon=True)
        for index in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30.0)

    assert not errors
    assert [item.version for item in store.list_versions("acr-guide")] == list(range(1, 21))


@pytest.mark.asyncio
async def test_async_appends_are_serialized(tmp_path: Path) -> None:
    repo = AcrVersionRepo(StateDB(tmp_path / "state" / "acr.sqlite3"))

    created = await asyncio.gather(
        *(repo.append_next_async("acr-guide", next_version()) for _ in range(5))
    )

    assert sorted(item.version for item in created) == [1, 2, 3, 4, 5]
    listed = await repo.list_versions_async("acr-guide")
    assert [item.version for item in listed] == [1, 2, 3, 4, 5]
