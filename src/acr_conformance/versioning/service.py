"""Version history for compliance documents."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Final

import structlog

from acr_conformance.constants import AI_INITIAL_REASON, SYSTEM_AI_AUTHOR
from acr_conformance.domain.ids import generate_version_id
from acr_conformance.domain.models import (
    AcrDocument,
    AcrVersion,
    DocumentStatus,
    VersionComparison,
)
from acr_conformance.evaluation.document import AttributionRequiredError, missing_attribution
from acr_conformance.persistence.version_repo import (
    VersionConflictError,
    VersionNotFoundError,
    VersionStore,
)
from acr_conformance.versioning.diff import (
    DEFAULT_REMARKS_TRUNCATE_LENGTH,
    generate_change_log,
    summarize_changes,
)

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

DEFAULT_MAX_ALLOCATION_RETRIES: Final[int] = 3


def _utc_now() -> datetime:
    return datetime.now(UTC)


class VersionDiffEngine:
    """
    Records immutable snapshots of a compliance document and diffs between them.

    Version numbers are allocated by the store's atomic ``append_next``. A conflict
    (another writer took the same number first) is retried up to
    ``max_allocation_retries`` times, recomputing the change log against the new
    predecessor each time, and then re-raised as :class:`VersionConflictError`.
    """

    def __init__(
        self,
        store: VersionStore,
        *,
        max_allocation_retries: int = DEFAULT_MAX_ALLOCATION_RETRIES,
        remarks_truncate_length: int = DEFAULT_REMARKS_TRUNCATE_LENGTH,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = generate_version_id,
        logger: Any | None = None,
    ) -> None:
        if max_allocation_retries < 0:
            raise ValueError("max_allocation_retries must be >= 0")
        if remarks_truncate_length <= 0:
            raise ValueError("remarks_truncate_length must be > 0")
        self._store = store
        self._max_allocation_retries = max_allocation_retries
        self._remarks_truncate_length = remarks_truncate_length
        self._clock = clock
        self._id_factory = id_factory
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        store: VersionStore,
        *,
        logger: Any | None = None,
    ) -> VersionDiffEngine:
        section = config.get("versioning", {})
        return cls(
            store,
            max_allocation_retries=int(
                section.get("max_allocation_retries", DEFAULT_MAX_ALLOCATION_RETRIES)
            ),
            remarks_truncate_length=int(
                section.get("remarks_truncate_length", DEFAULT_REMARKS_TRUNCATE_LENGTH)
            ),
            logger=logger,
        )

    @property
    def store(self) -> VersionStore:
        return self._store

    def create_version(
        self,
        acr_id: str,
        created_by: str,
        snapshot: AcrDocument,
        reason: str | None = None,
    ) -> AcrVersion:
        """
        Append ``snapshot`` as the next version of ``acr_id``.

        A ``final`` snapshot must carry an attributed remark with the matching marker on
        every criterion; otherwise :class:`AttributionRequiredError` is raised and nothing
        is stored.
        """

        if DocumentStatus(snapshot.status) is DocumentStatus.FINAL:
            missing = missing_attribution(snapshot)
            if missing:
                self._logger.warning(
                    "final_version_rejected", acr_id=acr_id, unattributed=list(missing)
                )
                raise AttributionRequiredError(missing)

        def build(previous: AcrVersion | None) -> AcrVersion:
            number = 1 if previous is None else previous.version + 1
            return AcrVersion(
                id=self._id_factory(),
                acr_id=acr_id,
                version=number,
                created_at=self._clock(),
                created_by=created_by,
                change_log=tuple(
                    generate_change_log(
                        None if previous is None else previous.snapshot,
                        snapshot,
                        reason,
                        remarks_truncate_length=self._remarks_truncate_length,
                    )
                ),
                snapshot=replace(snapshot, version=number),
            )

        attempt = 0
        while True:
            try:
                created = self._store.append_next(acr_id, build)
            except VersionConflictError as exc:
                if attempt >= self._max_allocation_retries:
                    self._logger.warning(
                        "version_allocation_exhausted",
                        acr_id=acr_id,
                        version=exc.version,
                        attempts=attempt + 1,
                    )
                    raise
                attempt += 1
                self._logger.info(
                    "version_allocation_conflict", acr_id=acr_id, version=exc.version, retry=attempt
                )
                continue
            self._logger.info(
                "version_created",
                acr_id=acr_id,
                version=created.version,
                created_by=created_by,
                changes=len(created.change_log),
            )
            return created

    def record_ai_assessment(self, acr_id: str, snapshot: AcrDocument) -> AcrVersion:
        """Store the snapshot produced by an automated analysis run."""

        return self.create_version(acr_id, SYSTEM_AI_AUTHOR, snapshot, AI_INITIAL_REASON)

    def get_versions(self, acr_id: str) -> list[AcrVersion]:
        return self._store.list_versions(acr_id)

    def get_version(self, acr_id: str, version: int) -> AcrVersion | None:
        return self._store.get(acr_id, version)

    def get_latest_version(self, acr_id: str) -> AcrVersion | None:
        return self._store.latest(acr_id)

    def get_version_count(self, acr_id: str) -> int:
        return self._store.count(acr_id)

    def compare_versions(self, acr_id: str, version_a: int, version_b: int) -> VersionComparison:
        """Diff two stored snapshots; ``version_a`` is treated as the earlier side."""

        first = self._require(acr_id, version_a)
        second = self._require(acr_id, version_b)
        changes = generate_change_log(
            first.snapshot,
            second.snapshot,
            remarks_truncate_length=self._remarks_truncate_length,
        )
        return VersionComparison(
            acr_id=acr_id,
            version_a=version_a,
            version_b=version_b,
            changes=tuple(changes),
            summary=summarize_changes(changes),
        )

    def delete_versions(self, acr_id: str) -> bool:
        """Administrative purge of every version of ``acr_id``."""

        removed = self._store.delete_all(acr_id)
        self._logger.warning("versions_purged", acr_id=acr_id, removed=removed)
        return removed > 0

    def _require(self, acr_id: str, version: int) -> AcrVersion:
        found = self._store.get(acr_id, version)
        if found is None:
            raise VersionNotFoundError(acr_id, version)
        return found


__all__ = ["DEFAULT_MAX_ALLOCATION_RETRIES", "VersionDiffEngine"]
