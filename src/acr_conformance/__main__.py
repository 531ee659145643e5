"""Module entrypoint for ``python -m acr_conformance``."""

from __future__ import annotations

from acr_conformance.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
