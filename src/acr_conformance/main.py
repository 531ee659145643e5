"""Process entrypoint for ``acr-conformance`` and ``python -m acr_conformance``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Exit statuses callers and scripts may rely on."""

    SUCCESS = 0
    DOMAIN_ERROR = 1
    CONFIG_ERROR = 2
    CONFLICT = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    try:
        from acr_conformance.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - last boundary before the shell
        code = classify_failure(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(f"error: {str(exc).strip() or type(exc).__name__}", file=sys.stderr)
        return int(code)


def console_main() -> None:
    raise SystemExit(cli_entrypoint())


def classify_failure(exc: BaseException) -> ExitCode:
    """
    Exit code for an escaped exception.

    The exception and then its causes are checked in turn; the first one with a known
    class decides. Conflicts are checked before the version-store base class they
    derive from, and configuration errors before the ``ValueError`` they subclass.
    """

    from acr_conformance.aggregation import BatchAggregationError
    from acr_conformance.config import ConfigLoadError, ConfigValidationError
    from acr_conformance.persistence import StateDBError, VersionConflictError, VersionStoreError

    routes: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
        ((VersionConflictError,), ExitCode.CONFLICT),
        ((BatchAggregationError, VersionStoreError, ValueError), ExitCode.DOMAIN_ERROR),
        ((FileNotFoundError, PermissionError, StateDBError), ExitCode.CONFIG_ERROR),
    )
    for link in _causes(exc):
        for types, code in routes:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in seen:
        seen.add(id(link))
        yield link
        implicit = None if link.__suppress_context__ else link.__context__
        link = link.__cause__ or implicit


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw, int) and raw in {code.value for code in ExitCode}:
        return raw
    if isinstance(raw, str) and raw.strip():
        print(raw.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


__all__ = ["ExitCode", "classify_failure", "cli_entrypoint", "console_main"]
