"""Plain-text output helpers for the ``acr-conformance`` CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class CLIRenderer:
    """Deterministic plain-text renderer; ``--json`` output bypasses it entirely."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def heading(self, text: str) -> None:
        print(text)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def section(self, title: str) -> None:
        print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print an ASCII table sized to its widest cells; prints nothing for no rows."""

        if not rows:
            return

        widths = [len(header) for header in headers]
        for row in rows:
            for index in range(min(len(row), len(headers))):
                widths[index] = max(widths[index], len(str(row[index])))

        def _pad(cells: Sequence[str]) -> str:
            parts = [
                (str(cells[index]) if index < len(cells) else "").ljust(width)
                for index, width in enumerate(widths)
            ]
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * width for width in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")


def create_renderer(*, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
