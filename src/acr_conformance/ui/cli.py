"""Command-line interface router for acr-conformance."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Final

from acr_conformance.aggregation import (
    AcrOptions,
    AggregateAcrResult,
    Batch,
    BatchAggregationError,
    BatchAggregator,
    BatchDocument,
)
from acr_conformance.catalog import CriteriaCatalog, load_criteria_catalog
from acr_conformance.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    effective_config,
    load_config,
)
from acr_conformance.domain.ids import generate_prefixed_id
from acr_conformance.domain.models import (
    AcrDocument,
    AcrEdition,
    AcrVersion,
    AuditIssue,
    DocumentAnalysis,
    ProductInfo,
    RemediationRecord,
    VersionComparison,
)
from acr_conformance.evaluation import ConformanceEvaluator, EvaluationPolicy, build_acr_document
from acr_conformance.main import ExitCode
from acr_conformance.mapping import adapt_upstream
from acr_conformance.observability import correlation_scope, setup_logging, shutdown_logging
from acr_conformance.persistence import AcrVersionRepo, StateDB, VersionNotFoundError
from acr_conformance.ui.render import CLIRenderer, create_renderer
from acr_conformance.versioning import VersionDiffEngine

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

SESSION_ID_PREFIX: Final[str] = "run"
AGGREGATION_STRATEGY_CHOICES: Final[tuple[str, ...]] = ("conservative", "optimistic")
_REPORT_EDITIONS: Final[tuple[str, ...]] = tuple(item.value for item in AcrEdition)

_IssueInput = tuple[tuple[AuditIssue, ...], tuple[RemediationRecord, ...]]


class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    def __init__(self, message: str, exit_code: int = ExitCode.CONFIG_ERROR) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)


class _FileBatchSource:
    """Batch source backed by analyses already loaded from a batch file."""

    def __init__(self, batch: Batch, analyses: Mapping[str, DocumentAnalysis]) -> None:
        self._batch = batch
        self._analyses = dict(analyses)

    async def get_batch(self, batch_id: str) -> Batch | None:
        return self._batch if batch_id == self._batch.batch_id else None

    async def get_analysis(self, job_id: str) -> DocumentAnalysis:
        try:
            return self._analyses[job_id]
        except KeyError:
            raise BatchAggregationError(f"no analysis supplied for job {job_id!r}") from None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="acr-conformance",
        description=(
            "Derive accessibility conformance reports from audit issues.\n\n"
            "Common workflows:\n"
            "  acr-conformance analyze issues.json --edition VPAT2.5-INT\n"
            "  acr-conformance aggregate batch.json --strategy optimistic\n"
            "  acr-conformance versions create ACR_ID snapshot.json --created-by alice\n"
            "  acr-conformance config dump\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./acr_conformance.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log at DEBUG level.",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # catalog -------------------------------------------------------------
    catalog_parser = subparsers.add_parser("catalog", help="Inspect the criterion catalog")
    catalog_commands = catalog_parser.add_subparsers(dest="catalog_command", required=True)
    editions_parser = catalog_commands.add_parser(
        "editions", parents=[common], help="List report editions"
    )
    editions_parser.set_defaults(handler=_cmd_catalog_editions, command_path="catalog editions")
    criteria_parser = catalog_commands.add_parser(
        "criteria", parents=[common], help="List the criteria an edition reports on"
    )
    criteria_parser.add_argument(
        "--edition",
        default=None,
        help="Edition code; unknown or missing codes fall back to the A+AA criteria.",
    )
    criteria_parser.set_defaults(handler=_cmd_catalog_criteria, command_path="catalog criteria")

    # analyze -------------------------------------------------------------
    analyze_parser = subparsers.add_parser(
        "analyze",
        parents=[common],
        help="Evaluate one document's issues against an edition",
        description=(
            "Classify every criterion of an edition from a document's audit issues.\n\n"
            "ISSUES.json is a list of issues, an object with 'issues' and optional\n"
            "'remediation' lists, or an object with tagged upstream 'records'.\n\n"
            "Examples:\n"
            "  acr-conformance analyze issues.json\n"
            "  acr-conformance analyze issues.json --remediation fixes.json --json\n"
            "  acr-conformance analyze issues.json --edition VPAT2.5-WCAG \\\n"
            "      --product product.json --acr-id acr-1\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    analyze_parser.add_argument("issues_path", help="Path to the issues JSON file")
    analyze_parser.add_argument("--edition", default=None, help="Edition code to evaluate")
    analyze_parser.add_argument(
        "--remediation",
        dest="remediation_path",
        default=None,
        help="JSON list of remediation records",
    )
    analyze_parser.add_argument(
        "--document-id", default=None, help="Document id (default: issues file stem)"
    )
    analyze_parser.add_argument(
        "--product",
        dest="product_path",
        default=None,
        help="Product info JSON; builds a draft report document (requires --edition)",
    )
    analyze_parser.add_argument("--acr-id", default=None, help="Id of the draft report document")
    analyze_parser.set_defaults(handler=_cmd_analyze, command_path="analyze")

    # aggregate -----------------------------------------------------------
    aggregate_parser = subparsers.add_parser(
        "aggregate",
        parents=[common],
        help="Combine a batch of document analyses into one report",
        description=(
            "Aggregate per-document analyses into composite criteria.\n\n"
            "BATCH.json holds 'batch_id', 'options' (edition, batch_name, vendor,\n"
            "contact_email) and 'documents'; each document carries a 'job_id' plus\n"
            "either an 'analysis' object or raw 'issues'.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    aggregate_parser.add_argument("batch_path", help="Path to the batch JSON file")
    aggregate_parser.add_argument(
        "--strategy",
        choices=AGGREGATION_STRATEGY_CHOICES,
        default=None,
        help="Aggregation strategy (default: aggregation.default_strategy)",
    )
    aggregate_parser.add_argument("--edition", default=None, help="Override options.edition")
    aggregate_parser.set_defaults(handler=_cmd_aggregate, command_path="aggregate")

    # versions ------------------------------------------------------------
    versions_parser = subparsers.add_parser(
        "versions", help="Record and compare report versions in the state DB"
    )
    version_commands = versions_parser.add_subparsers(dest="versions_command", required=True)

    create_parser = version_commands.add_parser(
        "create", parents=[common], help="Record a new version from a report snapshot"
    )
    create_parser.add_argument("acr_id", help="Report id")
    create_parser.add_argument("snapshot_path", help="Path to the report document JSON")
    create_parser.add_argument("--created-by", default=None, help="Author of the version")
    create_parser.add_argument("--reason", default=None, help="Reason recorded in the change log")
    create_parser.add_argument(
        "--ai",
        action="store_true",
        default=False,
        help="Record as an automated assessment by the system author",
    )
    create_parser.set_defaults(handler=_cmd_versions_create, command_path="versions create")

    list_parser = version_commands.add_parser(
        "list", parents=[common], help="List every version of a report"
    )
    list_parser.add_argument("acr_id", help="Report id")
    list_parser.set_defaults(handler=_cmd_versions_list, command_path="versions list")

    show_parser = version_commands.add_parser(
        "show", parents=[common], help="Show one version (default: latest)"
    )
    show_parser.add_argument("acr_id", help="Report id")
    show_parser.add_argument("version", nargs="?", type=int, default=None, help="Version number")
    show_parser.set_defaults(handler=_cmd_versions_show, command_path="versions show")

    compare_parser = version_commands.add_parser(
        "compare", parents=[common], help="Diff two stored versions"
    )
    compare_parser.add_argument("acr_id", help="Report id")
    compare_parser.add_argument("version_a", type=int, help="Earlier version")
    compare_parser.add_argument("version_b", type=int, help="Later version")
    compare_parser.set_defaults(handler=_cmd_versions_compare, command_path="versions compare")

    purge_parser = version_commands.add_parser(
        "purge", parents=[common], help="Delete every version of a report"
    )
    purge_parser.add_argument("acr_id", help="Report id")
    purge_parser.add_argument(
        "--yes", action="store_true", default=False, help="Confirm the irreversible purge"
    )
    purge_parser.set_defaults(handler=_cmd_versions_purge, command_path="versions purge")

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser("config", help="Inspect effective configuration")
    config_commands = config_parser.add_subparsers(dest="config_command", required=True)
    dump_parser = config_commands.add_parser(
        "dump", parents=[common], help="Print the merged, redacted configuration"
    )
    dump_parser.set_defaults(handler=_cmd_config_dump, command_path="config dump")

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        config = _load_effective_config(namespace)
        with _logging_session(namespace, config):
            result = handler(namespace, config)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_catalog_editions(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    catalog = _catalog(config)
    payload: dict[str, object] = {
        "command": "catalog editions",
        "catalog_version": catalog.version,
        "editions": [edition.to_dict() for edition in catalog.editions],
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    rows = [
        (
            f"{edition.code}{' *' if edition.recommended else ''}",
            edition.name,
            str(len(edition.criteria_ids)),
            ", ".join(edition.standards),
        )
        for edition in catalog.editions
    ]
    renderer.kv("Catalog version", catalog.version)
    renderer.table(("CODE", "NAME", "CRITERIA", "STANDARDS"), rows)
    renderer.text("(* recommended)")
    return 0


def _cmd_catalog_criteria(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    catalog = _catalog(config)
    edition = _optional_str(args.edition)
    criteria = catalog.criteria_for_edition(edition)
    known = edition is not None and catalog.edition_info(edition) is not None
    payload: dict[str, object] = {
        "command": "catalog criteria",
        "edition": edition,
        "edition_known": known,
        "criteria": [criterion.to_dict() for criterion in criteria],
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    if edition is not None and not known:
        renderer.text(f"Unknown edition {edition!r}; showing the Level A and AA criteria.")
    renderer.kv("Edition", edition if known else "(fallback A+AA)")
    renderer.table(
        ("ID", "LEVEL", "NAME"),
        [(item.id, str(item.level), item.name) for item in criteria],
    )
    return 0


def _cmd_analyze(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    catalog = _catalog(config)
    issues, remediation = _issue_input(_read_json(args.issues_path), "input")
    if args.remediation_path is not None:
        extra = _expect_list(_read_json(args.remediation_path), "remediation")
        remediation = remediation + tuple(
            RemediationRecord.from_dict(_expect_mapping(item, f"remediation[{index}]"))
            for index, item in enumerate(extra)
        )

    document_id = _optional_str(args.document_id) or Path(args.issues_path).stem
    edition = _optional_str(args.edition)
    if args.product_path is not None and (
        edition is None
        or edition not in _REPORT_EDITIONS
        or catalog.edition_info(edition) is None
    ):
        raise CLIError(
            "--product needs --edition naming a report edition: " + ", ".join(_REPORT_EDITIONS)
        )
    now = _utc_now()
    evaluator = ConformanceEvaluator(catalog, policy=EvaluationPolicy.from_config(config))
    with correlation_scope(document_id=document_id):
        analysis = evaluator.evaluate_document(
            document_id, issues, remediation, edition=edition, analyzed_at=now
        )

    payload: dict[str, object] = {"command": "analyze", "analysis": analysis.to_dict()}
    document: AcrDocument | None = None
    if args.product_path is not None:
        product = ProductInfo.from_dict(_expect_mapping(_read_json(args.product_path), "product"))
        document = build_acr_document(
            analysis,
            product,
            generated_at=now,
            acr_id=_optional_str(args.acr_id),
            edition=edition,
        )
        payload["document"] = document.to_dict()

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    summary = analysis.summary
    renderer.kv("Document", analysis.document_id)
    renderer.kv("Edition", analysis.edition or "(fallback A+AA)")
    renderer.kv("Overall confidence", analysis.overall_confidence)
    renderer.kv(
        "Summary",
        f"supports={summary.supports} partially_supports={summary.partially_supports} "
        f"does_not_support={summary.does_not_support} not_applicable={summary.not_applicable}",
    )
    renderer.table(
        ("CRITERION", "LEVEL", "STATUS", "CONFIDENCE", "REMAINING", "FIXED"),
        [
            (
                item.criterion_id,
                str(item.level),
                str(item.status),
                str(item.confidence),
                str(item.remaining_count),
                str(item.fixed_count),
            )
            for item in analysis.criteria
        ],
        title="Criteria:",
    )
    if analysis.other_issues.count:
        renderer.kv("\nOther issues", analysis.other_issues.count)
    if document is not None:
        renderer.kv("\nDraft document", document.id)
    return 0


def _cmd_aggregate(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    catalog = _catalog(config)
    payload = _expect_mapping(_read_json(args.batch_path), "batch")
    raw_options = _expect_mapping(payload.get("options", {}), "options")
    aggregation = config.get("aggregation", {})
    options = AcrOptions(
        edition=_optional_str(args.edition) or _optional_str(raw_options.get("edition")),
        batch_name=_optional_str(raw_options.get("batch_name")),
        vendor=_optional_str(raw_options.get("vendor")),
        contact_email=_optional_str(raw_options.get("contact_email")),
        aggregation_strategy=args.strategy
        or str(aggregation.get("default_strategy", "conservative")),
    )
    batch, analyses = _load_batch(payload, catalog, config, edition=options.edition)

    aggregator = BatchAggregator.from_config(config, catalog=catalog)
    source = _FileBatchSource(batch, analyses)
    with correlation_scope(batch_id=batch.batch_id):
        result = asyncio.run(aggregator.fetch_and_aggregate(batch.batch_id, source, options))

    if _flag(args, "json"):
        _emit_json({"command": "aggregate", "result": result.to_dict()})
        return 0
    _render_aggregate(_get_renderer(args), result)
    return 0


def _cmd_versions_create(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    snapshot = AcrDocument.from_dict(_expect_mapping(_read_json(args.snapshot_path), "snapshot"))
    created_by = _optional_str(args.created_by)
    if not args.ai and created_by is None:
        raise CLIError("--created-by is required unless --ai is given")

    with _version_engine(config) as engine, correlation_scope(acr_id=args.acr_id):
        if args.ai or created_by is None:
            created = engine.record_ai_assessment(args.acr_id, snapshot)
        else:
            created = engine.create_version(
                args.acr_id, created_by, snapshot, _optional_str(args.reason)
            )

    if _flag(args, "json"):
        _emit_json({"command": "versions create", "version": _version_summary(created)})
        return 0
    renderer = _get_renderer(args)
    renderer.kv("Created version", f"{created.acr_id} v{created.version}")
    renderer.kv("Version id", created.id)
    _render_changes(renderer, [entry.to_dict() for entry in created.change_log])
    return 0


def _cmd_versions_list(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    with _version_engine(config) as engine:
        versions = engine.get_versions(args.acr_id)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "versions list",
                "acr_id": args.acr_id,
                "versions": [_version_summary(item) for item in versions],
            }
        )
        return 0
    renderer = _get_renderer(args)
    if not versions:
        renderer.text(f"No versions recorded for {args.acr_id}.")
        return 0
    renderer.table(
        ("VERSION", "CREATED_AT", "CREATED_BY", "CHANGES"),
        [
            (
                str(item.version),
                str(item.to_dict()["created_at"]),
                item.created_by,
                str(len(item.change_log)),
            )
            for item in versions
        ],
        title=f"Versions of {args.acr_id}:",
    )
    return 0


def _cmd_versions_show(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    with _version_engine(config) as engine:
        if args.version is None:
            found = engine.get_latest_version(args.acr_id)
            if found is None:
                raise CLIError(
                    f"no versions recorded for {args.acr_id!r}", exit_code=ExitCode.DOMAIN_ERROR
                )
        else:
            found = engine.get_version(args.acr_id, args.version)
            if found is None:
                raise VersionNotFoundError(args.acr_id, args.version)

    payload = found.to_dict()
    if _flag(args, "json"):
        _emit_json({"command": "versions show", "version": payload})
        return 0
    renderer = _get_renderer(args)
    renderer.kv("Version", f"{found.acr_id} v{found.version}")
    renderer.kv("Created", f"{payload['created_at']} by {found.created_by}")
    renderer.kv("Status", found.snapshot.status)
    renderer.kv("Criteria", len(found.snapshot.criteria))
    _render_changes(renderer, [entry.to_dict() for entry in found.change_log])
    return 0


def _cmd_versions_compare(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    with _version_engine(config) as engine:
        comparison = engine.compare_versions(args.acr_id, args.version_a, args.version_b)

    if _flag(args, "json"):
        _emit_json({"command": "versions compare", "comparison": comparison.to_dict()})
        return 0
    _render_comparison(_get_renderer(args), comparison)
    return 0


def _cmd_versions_purge(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    if not args.yes:
        raise CLIError(f"refusing to purge every version of {args.acr_id!r} without --yes")
    with _version_engine(config) as engine:
        purged = engine.delete_versions(args.acr_id)

    if _flag(args, "json"):
        _emit_json({"command": "versions purge", "acr_id": args.acr_id, "purged": purged})
        return 0
    renderer = _get_renderer(args)
    if purged:
        renderer.text(f"Purged every version of {args.acr_id}.")
    else:
        renderer.text(f"No versions recorded for {args.acr_id}.")
    return 0


def _cmd_config_dump(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    if _flag(args, "json"):
        print(dump_effective_config(config))
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", _optional_str(args.profile) or "(default)")
    renderer.text(json.dumps(effective_config(config), indent=2, sort_keys=True))
    return 0


# ---------------------------------------------------------------------------
# Helpers: input files
# ---------------------------------------------------------------------------


def _read_json(path_arg: str) -> object:
    path = Path(path_arg).expanduser()
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CLIError(f"input file not found: {path}") from exc
    except OSError as exc:
        raise CLIError(f"unable to read {path}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON in {path}: {exc}") from exc


def _expect_mapping(value: object, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise CLIError(
            f"{path}: expected object, got {type(value).__name__}",
            exit_code=ExitCode.DOMAIN_ERROR,
        )
    return value


def _expect_list(value: object, path: str) -> list[object]:
    if not isinstance(value, list):
        raise CLIError(
            f"{path}: expected list, got {type(value).__name__}",
            exit_code=ExitCode.DOMAIN_ERROR,
        )
    return value


def _issue_input(payload: object, path: str) -> _IssueInput:
    """Accept a bare issue list, an issues/remediation object, or tagged upstream records."""

    if isinstance(payload, list):
        return _audit_issues(payload, path), ()
    mapping = _expect_mapping(payload, path)
    if "records" in mapping:
        records = _expect_list(mapping["records"], f"{path}.records")
        adapted = adapt_upstream(
            _expect_mapping(item, f"{path}.records[{index}]") for index, item in enumerate(records)
        )
        return adapted.issues, adapted.remediation
    issues = _audit_issues(_expect_list(mapping.get("issues", []), f"{path}.issues"), path)
    remediation = tuple(
        RemediationRecord.from_dict(_expect_mapping(item, f"{path}.remediation[{index}]"))
        for index, item in enumerate(
            _expect_list(mapping.get("remediation", []), f"{path}.remediation")
        )
    )
    return issues, remediation


def _audit_issues(items: Sequence[object], path: str) -> tuple[AuditIssue, ...]:
    return tuple(
        AuditIssue.from_dict(_expect_mapping(item, f"{path}.issues[{index}]"))
        for index, item in enumerate(items)
    )


def _load_batch(
    payload: Mapping[str, Any],
    catalog: CriteriaCatalog,
    config: Mapping[str, Any],
    *,
    edition: str | None,
) -> tuple[Batch, dict[str, DocumentAnalysis]]:
    batch_id = _optional_str(payload.get("batch_id"))
    if batch_id is None:
        raise CLIError("batch.batch_id is required", exit_code=ExitCode.DOMAIN_ERROR)

    evaluator: ConformanceEvaluator | None = None
    documents: list[BatchDocument] = []
    analyses: dict[str, DocumentAnalysis] = {}
    for index, entry in enumerate(_expect_list(payload.get("documents", []), "documents")):
        path = f"documents[{index}]"
        item = _expect_mapping(entry, path)
        job_id = _optional_str(item.get("job_id"))
        if job_id is None:
            raise CLIError(f"{path}.job_id is required", exit_code=ExitCode.DOMAIN_ERROR)
        documents.append(
            BatchDocument(
                job_id=job_id,
                file_name=_optional_str(item.get("file_name")) or job_id,
                completed=bool(item.get("completed", True)),
            )
        )
        if "analysis" in item:
            analyses[job_id] = DocumentAnalysis.from_dict(
                _expect_mapping(item["analysis"], f"{path}.analysis")
            )
        elif "issues" in item or "records" in item:
            if evaluator is None:
                evaluator = ConformanceEvaluator(
                    catalog, policy=EvaluationPolicy.from_config(config)
                )
            issues, remediation = _issue_input(item, path)
            analyses[job_id] = evaluator.evaluate_document(
                job_id, issues, remediation, edition=edition, analyzed_at=_utc_now()
            )

    total = payload.get("total_documents")
    if total is not None and (isinstance(total, bool) or not isinstance(total, int)):
        raise CLIError("batch.total_documents must be an integer", exit_code=ExitCode.DOMAIN_ERROR)
    return Batch(batch_id=batch_id, documents=tuple(documents), total_documents=total), analyses


# ---------------------------------------------------------------------------
# Helpers: config, logging, state
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {}
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"
    try:
        return load_config(
            _optional_str(getattr(args, "config_path", None)),
            profile=_optional_str(getattr(args, "profile", None)),
            cli_overrides=overrides,
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc


@contextmanager
def _logging_session(args: argparse.Namespace, config: Mapping[str, Any]) -> Iterator[None]:
    handle = setup_logging(
        config.get("observability"), session_id=generate_prefixed_id(SESSION_ID_PREFIX)
    )
    try:
        with correlation_scope(command=str(getattr(args, "command_path", args.command))):
            yield
    finally:
        shutdown_logging(handle)


def _catalog(config: Mapping[str, Any]) -> CriteriaCatalog:
    section = config.get("catalog", {})
    return load_criteria_catalog(_optional_str(section.get("path")))


@contextmanager
def _version_engine(config: Mapping[str, Any]) -> Iterator[VersionDiffEngine]:
    with StateDB(_state_db_path(config)) as db:
        yield VersionDiffEngine.from_config(config, AcrVersionRepo(db))


def _state_db_path(config: Mapping[str, Any]) -> Path:
    raw = _optional_str(config.get("paths", {}).get("state_db"))
    if raw is None:
        raise CLIError("missing config path: paths.state_db")
    return Path(raw)


# ---------------------------------------------------------------------------
# Helpers: rendering
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _render_aggregate(renderer: CLIRenderer, result: AggregateAcrResult) -> None:
    info = result.batch_info
    renderer.kv("Batch", f"{result.batch_id} ({result.batch_name})")
    renderer.kv("Edition", result.edition.value)
    renderer.kv("Strategy", info.aggregation_strategy.value)
    renderer.kv("Documents", info.total_documents)
    renderer.table(
        ("CRITERION", "LEVEL", "COMPOSITE", "REMARKS"),
        [
            (
                item.criterion_id,
                str(item.level),
                str(item.composite_conformance_level),
                item.composite_remarks,
            )
            for item in result.criteria
        ],
        title="Composite criteria:",
    )
    renderer.text(f"\n{result.message}")


def _render_changes(renderer: CLIRenderer, changes: Sequence[Mapping[str, object]]) -> None:
    renderer.table(
        ("FIELD", "PREVIOUS", "NEW", "REASON"),
        [
            (
                str(entry["field"]),
                _cell(entry.get("previous_value")),
                _cell(entry.get("new_value")),
                _cell(entry.get("reason")),
            )
            for entry in changes
        ],
        title="Changes:",
    )


def _render_comparison(renderer: CLIRenderer, comparison: VersionComparison) -> None:
    summary = comparison.summary
    renderer.kv(
        "Comparing", f"{comparison.acr_id} v{comparison.version_a} -> v{comparison.version_b}"
    )
    renderer.kv("Fields changed", summary.fields_changed)
    renderer.kv("Criteria changed", summary.criteria_changed)
    renderer.kv("Status changed", "yes" if summary.status_changed else "no")
    _render_changes(renderer, [entry.to_dict() for entry in comparison.changes])


def _version_summary(version: AcrVersion) -> dict[str, object]:
    payload: dict[str, object] = dict(version.to_dict())
    payload.pop("snapshot", None)
    return payload


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
