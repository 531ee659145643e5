"""
CLI subprocess smoke contracts.

Runs ``python -m acr_conformance`` the way an operator would: exit codes, JSON on
stdout, diagnostics on stderr, and persisted version history between invocations.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

pytestmark = pytest.mark.integration


def _run_cli(workdir: Path, *args: str) -> subprocess.CompletedProcess[str]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("ACR_")}
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    return subprocess.run(
        [sys.executable, "-m", "acr_conformance", *args],
        cwd=workdir,
        text=True,
        capture_output=True,
        check=False,
        env=env,
        timeout=120,
    )


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    (tmp_path / "acr_conformance.toml").write_text(
        '[paths]\nstate_db = "state/acr.sqlite3"\n\n[observability]\nlog_dir = "logs"\n',
        encoding="utf-8",
    )
    return tmp_path


def test_analyze_then_version_roundtrip(workdir: Path) -> None:
    config = str(workdir / "acr_conformance.toml")
    (workdir / "guide.json").write_text(
        json.dumps([{"code": "img-alt", "severity": "critical", "message": "Cover has no alt"}]),
        encoding="utf-8",
    )
    (workdir / "product.json").write_text(
        json.dumps(
            {
                "name": "Field Guide",
                "version": "3.2",
                "vendor": "Example Press",
                "contact_email": "a11y@example.com",
            }
        ),
        encoding="utf-8",
    )

    analyzed = _run_cli(
        workdir,
        "analyze",
        "guide.json",
        "--edition",
        "VPAT2.5-WCAG",
        "--product",
        "product.json",
        "--acr-id",
        "acr-guide",
        "--config",
        config,
        "--json",
    )
    assert analyzed.returncode == 0, analyzed.stderr
    document = json.loads(analyzed.stdout)["document"]
    (workdir / "document.json").write_text(json.dumps(document), encoding="utf-8")

    for author in ("reviewer-a", "reviewer-b"):
        created = _run_cli(
            workdir,
            "versions",
            "create",
            "acr-guide",
            "document.json",
            "--created-by",
            author,
            "--config",
            config,
            "--json",
        )
        assert created.returncode == 0, created.stderr

    listed = _run_cli(workdir, "versions", "list", "acr-guide", "--config", config, "--json")
    assert listed.returncode == 0, listed.stderr
    versions = json.loads(listed.stdout)["versions"]
    assert [item["version"] for item in versions] == [1, 2]
    assert (workdir / "state" / "acr.sqlite3").exists()
    assert list((workdir / "logs").glob("run-*/acr_conformance.jsonl"))


def test_missing_config_is_a_config_error(tmp_path: Path) -> None:
    completed = _run_cli(
        tmp_path, "catalog", "editions", "--config", str(tmp_path / "missing.toml")
    )

    assert completed.returncode == 2
    assert completed.stderr.startswith("error:")
    assert completed.stdout == ""
