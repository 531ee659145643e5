"""Dataclass domain models with strict validation and canonical serialization."""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, NoReturn, TypeVar, cast

try:
    from datetime import UTC
except ImportError:
    UTC = timezone.utc  # noqa: UP017

if TYPE_CHECKING:
    from enum import StrEnum
else:
    try:
        from enum import StrEnum
    except ImportError:

        class StrEnum(str, Enum):
            """Compatibility fallback for Python < 3.11."""


JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_SCHEMA_VERSION = 1
_MAX_TEXT = 65536
_MAX_JSON_DEPTH = 16
_MAX_JSON_COLLECTION = 4096
_MAX_FINDINGS = 5


class CriterionLevel(StrEnum):
    A = "A"
    AA = "AA"
    AAA = "AAA"
    EU = "EU"


class Severity(StrEnum):
    CRITICAL = "critical"
    SERIOUS = "serious"
    MODERATE = "moderate"
    MINOR = "minor"
    UNKNOWN = "unknown"


class CriterionStatus(StrEnum):
    SUPPORTS = "supports"
    PARTIALLY_SUPPORTS = "partially_supports"
    DOES_NOT_SUPPORT = "does_not_support"
    NOT_APPLICABLE = "not_applicable"


class ConformanceLevel(StrEnum):
    SUPPORTS = "Supports"
    PARTIALLY_SUPPORTS = "Partially Supports"
    DOES_NOT_SUPPORT = "Does Not Support"
    NOT_APPLICABLE = "Not Applicable"


class AttributionTag(StrEnum):
    AUTOMATED = "AUTOMATED"
    AI_SUGGESTED = "AI_SUGGESTED"
    HUMAN_VERIFIED = "HUMAN_VERIFIED"


class VerificationStatus(StrEnum):
    PENDING = "PENDING"
    VERIFIED_PASS = "VERIFIED_PASS"
    VERIFIED_FAIL = "VERIFIED_FAIL"
    VERIFIED_PARTIAL = "VERIFIED_PARTIAL"
    DEFERRED = "DEFERRED"


class AcrEdition(StrEnum):
    SECTION_508 = "VPAT2.5-508"
    WCAG = "VPAT2.5-WCAG"
    EU = "VPAT2.5-EU"
    INTERNATIONAL = "VPAT2.5-INT"


class DocumentStatus(StrEnum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    FINAL = "final"


class AggregationStrategy(StrEnum):
    CONSERVATIVE = "conservative"
    OPTIMISTIC = "optimistic"


class RemediationStatus(StrEnum):
    COMPLETED = "completed"
    AUTO_FIXED = "auto-fixed"
    FIXED = "fixed"
    PENDING = "pending"
    FAILED = "failed"
    SKIPPED = "skipped"


class FixMethod(StrEnum):
    AUTOFIX = "autofix"
    QUICKFIX = "quickfix"
    MANUAL = "manual"


class OtherIssueStatus(StrEnum):
    PENDING = "pending"
    FIXED = "fixed"
    FAILED = "failed"
    SKIPPED = "skipped"


FIXED_REMEDIATION_STATUSES: frozenset[RemediationStatus] = frozenset(
    {RemediationStatus.COMPLETED, RemediationStatus.AUTO_FIXED, RemediationStatus.FIXED}
)

SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.SERIOUS,
    Severity.MODERATE,
    Severity.UNKNOWN,
    Severity.MINOR,
)

STATUS_RANK: dict[CriterionStatus, int] = {
    CriterionStatus.DOES_NOT_SUPPORT: 0,
    CriterionStatus.PARTIALLY_SUPPORTS: 1,
    CriterionStatus.SUPPORTS: 2,
    CriterionStatus.NOT_APPLICABLE: 2,
}

STATUS_TO_CONFORMANCE: dict[CriterionStatus, ConformanceLevel] = {
    CriterionStatus.SUPPORTS: ConformanceLevel.SUPPORTS,
    CriterionStatus.PARTIALLY_SUPPORTS: ConformanceLevel.PARTIALLY_SUPPORTS,
    CriterionStatus.DOES_NOT_SUPPORT: ConformanceLevel.DOES_NOT_SUPPORT,
    CriterionStatus.NOT_APPLICABLE: ConformanceLevel.NOT_APPLICABLE,
}


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self, self.__class__.__name__)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        if not isinstance(raw, str):
            _fail(cls.__name__, f"expected JSON string, got {type(raw).__name__}")
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    allowed = required | (optional or set())
    unknown = sorted(key for key in parsed if key not in allowed)
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(
    value: object,
    path: str,
    *,
    min_len: int = 1,
    max_len: int = _MAX_TEXT,
    strip: bool = True,
) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip() if strip else value
    if len(normalized) < min_len:
        _fail(path, f"must be at least {min_len} character(s)")
    if len(normalized) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return normalized


def _as_optional_str(value: object, path: str, *, max_len: int = _MAX_TEXT) -> str | None:
    if value is None:
        return None
    return _as_str(value, path, max_len=max_len)


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(
    value: object,
    path: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        _fail(path, f"must be <= {maximum}")
    return value


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None:
        return None
    return _as_datetime(value, path)


def datetime_to_iso8601z(value: datetime) -> str:
    normalized = _as_datetime(value, "datetime")
    return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def as_severity(value: object) -> Severity:
    """Missing or unrecognized severities fold into ``Severity.UNKNOWN``."""

    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        try:
            return Severity(value.strip().lower())
        except ValueError:
            return Severity.UNKNOWN
    return Severity.UNKNOWN


def _as_sequence(value: object, path: str) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    _fail(path, f"expected array, got {type(value).__name__}")


def _as_str_tuple(
    value: object,
    path: str,
    *,
    allow_empty: bool,
    unique: bool,
    max_len: int = _MAX_TEXT,
) -> tuple[str, ...]:
    values = _as_sequence(value, path)
    if not allow_empty and not values:
        _fail(path, "must not be empty")
    if len(values) > _MAX_JSON_COLLECTION:
        _fail(path, f"too many items (>{_MAX_JSON_COLLECTION})")

    parsed: list[str] = []
    for index, item in enumerate(values):
        parsed.append(_as_str(item, f"{path}[{index}]", max_len=max_len))

    if unique and len(set(parsed)) != len(parsed):
        _fail(path, "contains duplicate values")
    return tuple(parsed)


def _as_model_tuple(
    value: object,
    path: str,
    model: type[TModel],
) -> tuple[TModel, ...]:
    items = _as_sequence(value, path)
    if len(items) > _MAX_JSON_COLLECTION:
        _fail(path, f"too many items (>{_MAX_JSON_COLLECTION})")
    parsed: list[TModel] = []
    for index, item in enumerate(items):
        if isinstance(item, model):
            parsed.append(item)
        elif isinstance(item, Mapping):
            try:
                parsed.append(model.from_dict(item))
            except ValueError as exc:
                _fail(f"{path}[{index}]", str(exc))
        else:
            _fail(f"{path}[{index}]", f"expected {model.__name__}, got {type(item).__name__}")
    return tuple(parsed)


def _as_model(value: object, path: str, model: type[TModel]) -> TModel:
    if isinstance(value, model):
        return value
    if isinstance(value, Mapping):
        try:
            return model.from_dict(value)
        except ValueError as exc:
            _fail(path, str(exc))
    _fail(path, f"expected {model.__name__}, got {type(value).__name__}")


def _as_json_value(value: object, path: str, *, depth: int = 0) -> JSONValue:
    if depth > _MAX_JSON_DEPTH:
        _fail(path, f"JSON nesting exceeds max depth {_MAX_JSON_DEPTH}")

    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, str):
        if len(value) > _MAX_TEXT:
            _fail(path, f"string exceeds max length {_MAX_TEXT}")
        return value
    if isinstance(value, (list, tuple)):
        if len(value) > _MAX_JSON_COLLECTION:
            _fail(path, f"list length exceeds {_MAX_JSON_COLLECTION}")
        return [
            _as_json_value(item, f"{path}[{idx}]", depth=depth + 1)
            for idx, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        if len(value) > _MAX_JSON_COLLECTION:
            _fail(path, f"object size exceeds {_MAX_JSON_COLLECTION}")
        parsed: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, f"object key must be string, got {type(key).__name__}")
            parsed[key] = _as_json_value(item, f"{path}.{key}", depth=depth + 1)
        return parsed

    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def _serialize_value(value: object, path: str) -> JSONValue:
    if value is None or isinstance(value, bool):
        return cast("JSONValue", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Enum):
        raw = value.value
        if not isinstance(raw, str):
            _fail(path, "enum value must be string")
        return raw
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return datetime_to_iso8601z(value)
    if isinstance(value, (tuple, list)):
        return [_serialize_value(item, f"{path}[]") for item in value]
    if isinstance(value, Mapping):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, "dict keys must be strings")
            out[key] = _serialize_value(item, f"{path}.{key}")
        return out
    if is_dataclass(value):
        out_obj: dict[str, JSONValue] = {}
        for dataclass_field in fields(value):
            out_obj[dataclass_field.name] = _serialize_value(
                getattr(value, dataclass_field.name),
                f"{path}.{dataclass_field.name}",
            )
        return out_obj

    _fail(path, f"cannot serialize value of type {type(value).__name__}")


@dataclass(slots=True)
class SuccessCriterion(CanonicalModel):
    id: str
    name: str
    level: CriterionLevel | str
    section: str

    def __post_init__(self) -> None:
        self.id = _as_str(self.id, "SuccessCriterion.id", max_len=32)
        self.name = _as_str(self.name, "SuccessCriterion.name", max_len=256)
        self.level = _as_enum(CriterionLevel, self.level, "SuccessCriterion.level")
        self.section = _as_str(self.section, "SuccessCriterion.section", max_len=256)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> SuccessCriterion:
        parsed = _expect_object(
            data, "SuccessCriterion", required={"id", "name", "level", "section"}
        )
        return cls(
            id=_as_str(parsed["id"], "SuccessCriterion.id"),
            name=_as_str(parsed["name"], "SuccessCriterion.name"),
            level=_as_enum(CriterionLevel, parsed["level"], "SuccessCriterion.level"),
            section=_as_str(parsed["section"], "SuccessCriterion.section"),
        )


@dataclass(slots=True)
class AuditIssue(CanonicalModel):
    """A detected accessibility finding as supplied by the issue source."""

    code: str
    severity: Severity | str | None
    message: str
    file_path: str | None = None
    location: str | None = None
    explicit_criteria: tuple[str, ...] = ()
    issue_id: str | None = None

    def __post_init__(self) -> None:
        self.code = _as_str(self.code, "AuditIssue.code", max_len=256)
        self.severity = as_severity(self.severity)
        self.message = _as_str(self.message, "AuditIssue.message", min_len=0)
        self.file_path = _as_optional_str(self.file_path, "AuditIssue.file_path", max_len=2048)
        self.location = _as_optional_str(self.location, "AuditIssue.location", max_len=2048)
        self.explicit_criteria = _as_str_tuple(
            self.explicit_criteria,
            "AuditIssue.explicit_criteria",
            allow_empty=True,
            unique=False,
            max_len=32,
        )
        # Preserve first-seen order while dropping duplicate tags.
        self.explicit_criteria = tuple(dict.fromkeys(self.explicit_criteria))
        self.issue_id = _as_optional_str(self.issue_id, "AuditIssue.issue_id", max_len=256)

    @property
    def stable_id(self) -> str:
        """Upstream id when present, else a content hash so re-evaluation stays deterministic."""

        if self.issue_id is not None:
            return self.issue_id
        digest = hashlib.sha256(
            canonical_json(
                [self.code, str(self.severity), self.message, self.file_path, self.location]
            ).encode("utf-8")
        ).hexdigest()
        return f"issue-{digest[:16]}"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AuditIssue:
        parsed = _expect_object(
            data,
            "AuditIssue",
            required={"code", "message"},
            optional={"severity", "file_path", "location", "explicit_criteria", "issue_id"},
        )
        return cls(
            code=_as_str(parsed["code"], "AuditIssue.code"),
            severity=as_severity(parsed.get("severity")),
            message=_as_str(parsed["message"], "AuditIssue.message", min_len=0),
            file_path=_as_optional_str(parsed.get("file_path"), "AuditIssue.file_path"),
            location=_as_optional_str(parsed.get("location"), "AuditIssue.location"),
            explicit_criteria=_as_str_tuple(
                parsed.get("explicit_criteria", ()),
                "AuditIssue.explicit_criteria",
                allow_empty=True,
                unique=False,
            ),
            issue_id=_as_optional_str(parsed.get("issue_id"), "AuditIssue.issue_id"),
        )


@dataclass(slots=True)
class RemediationRecord(CanonicalModel):
    """Marks earlier findings as resolved, keyed by issue code, criterion, or task issue list."""

    issue_code: str | None = None
    criterion_id: str | None = None
    issue_codes: tuple[str, ...] = ()
    status: RemediationStatus | str = RemediationStatus.COMPLETED
    fixed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.issue_code = _as_optional_str(self.issue_code, "RemediationRecord.issue_code")
        self.criterion_id = _as_optional_str(self.criterion_id, "RemediationRecord.criterion_id")
        self.issue_codes = _as_str_tuple(
            self.issue_codes,
            "RemediationRecord.issue_codes",
            allow_empty=True,
            unique=False,
        )
        if self.issue_code is None and self.criterion_id is None and not self.issue_codes:
            _fail(
                "RemediationRecord",
                "one of issue_code, criterion_id, or issue_codes is required",
            )
        self.status = _as_enum(RemediationStatus, self.status, "RemediationRecord.status")
        self.fixed_at = _as_optional_datetime(self.fixed_at, "RemediationRecord.fixed_at")

    @property
    def is_fixed(self) -> bool:
        return self.status in FIXED_REMEDIATION_STATUSES

    def covers(self, issue_code: str, criterion_id: str) -> bool:
        return (
            self.issue_code == issue_code
            or self.criterion_id == criterion_id
            or issue_code in self.issue_codes
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RemediationRecord:
        parsed = _expect_object(
            data,
            "RemediationRecord",
            required=set(),
            optional={"issue_code", "criterion_id", "issue_codes", "status", "fixed_at"},
        )
        return cls(
            issue_code=_as_optional_str(parsed.get("issue_code"), "RemediationRecord.issue_code"),
            criterion_id=_as_optional_str(
                parsed.get("criterion_id"), "RemediationRecord.criterion_id"
            ),
            issue_codes=_as_str_tuple(
                parsed.get("issue_codes", ()),
                "RemediationRecord.issue_codes",
                allow_empty=True,
                unique=False,
            ),
            status=_as_enum(
                RemediationStatus,
                parsed.get("status", RemediationStatus.COMPLETED),
                "RemediationRecord.status",
            ),
            fixed_at=_as_optional_datetime(parsed.get("fixed_at"), "RemediationRecord.fixed_at"),
        )


@dataclass(slots=True)
class IssueDetail(CanonicalModel):
    issue_id: str
    rule_id: str
    severity: Severity | str
    message: str
    file_path: str | None = None
    location: str | None = None
    fixed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.issue_id = _as_str(self.issue_id, "IssueDetail.issue_id")
        self.rule_id = _as_str(self.rule_id, "IssueDetail.rule_id")
        self.severity = as_severity(self.severity)
        self.message = _as_str(self.message, "IssueDetail.message", min_len=0)
        self.file_path = _as_optional_str(self.file_path, "IssueDetail.file_path")
        self.location = _as_optional_str(self.location, "IssueDetail.location")
        self.fixed_at = _as_optional_datetime(self.fixed_at, "IssueDetail.fixed_at")

    @classmethod
    def from_issue(cls, issue: AuditIssue, *, fixed_at: datetime | None = None) -> IssueDetail:
        return cls(
            issue_id=issue.stable_id,
            rule_id=issue.code,
            severity=issue.severity,
            message=issue.message,
            file_path=issue.file_path,
            location=issue.location,
            fixed_at=fixed_at,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> IssueDetail:
        parsed = _expect_object(
            data,
            "IssueDetail",
            required={"issue_id", "rule_id", "message"},
            optional={"severity", "file_path", "location", "fixed_at"},
        )
        return cls(
            issue_id=_as_str(parsed["issue_id"], "IssueDetail.issue_id"),
            rule_id=_as_str(parsed["rule_id"], "IssueDetail.rule_id"),
            severity=as_severity(parsed.get("severity")),
            message=_as_str(parsed["message"], "IssueDetail.message", min_len=0),
            file_path=_as_optional_str(parsed.get("file_path"), "IssueDetail.file_path"),
            location=_as_optional_str(parsed.get("location"), "IssueDetail.location"),
            fixed_at=_as_optional_datetime(parsed.get("fixed_at"), "IssueDetail.fixed_at"),
        )


@dataclass(slots=True)
class CriterionAnalysis(CanonicalModel):
    criterion_id: str
    name: str
    level: CriterionLevel | str
    status: CriterionStatus | str
    confidence: int
    findings: tuple[str, ...] = ()
    recommendation: str = ""
    fixed_issues: tuple[IssueDetail, ...] = ()
    remaining_issues: tuple[IssueDetail, ...] = ()

    def __post_init__(self) -> None:
        self.criterion_id = _as_str(self.criterion_id, "CriterionAnalysis.criterion_id")
        self.name = _as_str(self.name, "CriterionAnalysis.name")
        self.level = _as_enum(CriterionLevel, self.level, "CriterionAnalysis.level")
        self.status = _as_enum(CriterionStatus, self.status, "CriterionAnalysis.status")
        self.confidence = _as_int(
            self.confidence, "CriterionAnalysis.confidence", minimum=0, maximum=100
        )
        self.findings = _as_str_tuple(
            self.findings, "CriterionAnalysis.findings", allow_empty=True, unique=False
        )
        if len(self.findings) > _MAX_FINDINGS:
            _fail("CriterionAnalysis.findings", f"must contain <= {_MAX_FINDINGS} entries")
        self.recommendation = _as_str(
            self.recommendation, "CriterionAnalysis.recommendation", min_len=0
        )
        self.fixed_issues = _as_model_tuple(
            self.fixed_issues, "CriterionAnalysis.fixed_issues", IssueDetail
        )
        self.remaining_issues = _as_model_tuple(
            self.remaining_issues, "CriterionAnalysis.remaining_issues", IssueDetail
        )

    @property
    def fixed_count(self) -> int:
        return len(self.fixed_issues)

    @property
    def remaining_count(self) -> int:
        return len(self.remaining_issues)

    @property
    def conformance_level(self) -> ConformanceLevel:
        return STATUS_TO_CONFORMANCE[CriterionStatus(self.status)]

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> CriterionAnalysis:
        parsed = _expect_object(
            data,
            "CriterionAnalysis",
            required={"criterion_id", "name", "level", "status", "confidence"},
            optional={"findings", "recommendation", "fixed_issues", "remaining_issues"},
        )
        return cls(
            criterion_id=_as_str(parsed["criterion_id"], "CriterionAnalysis.criterion_id"),
            name=_as_str(parsed["name"], "CriterionAnalysis.name"),
            level=_as_enum(CriterionLevel, parsed["level"], "CriterionAnalysis.level"),
            status=_as_enum(CriterionStatus, parsed["status"], "CriterionAnalysis.status"),
            confidence=_as_int(parsed["confidence"], "CriterionAnalysis.confidence"),
            findings=_as_str_tuple(
                parsed.get("findings", ()),
                "CriterionAnalysis.findings",
                allow_empty=True,
                unique=False,
            ),
            recommendation=_as_str(
                parsed.get("recommendation", ""), "CriterionAnalysis.recommendation", min_len=0
            ),
            fixed_issues=_as_model_tuple(
                parsed.get("fixed_issues", ()), "CriterionAnalysis.fixed_issues", IssueDetail
            ),
            remaining_issues=_as_model_tuple(
                parsed.get("remaining_issues", ()),
                "CriterionAnalysis.remaining_issues",
                IssueDetail,
            ),
        )


@dataclass(slots=True)
class ConformanceSummary(CanonicalModel):
    supports: int = 0
    partially_supports: int = 0
    does_not_support: int = 0
    not_applicable: int = 0

    def __post_init__(self) -> None:
        self.supports = _as_int(self.supports, "ConformanceSummary.supports", minimum=0)
        self.partially_supports = _as_int(
            self.partially_supports, "ConformanceSummary.partially_supports", minimum=0
        )
        self.does_not_support = _as_int(
            self.does_not_support, "ConformanceSummary.does_not_support", minimum=0
        )
        self.not_applicable = _as_int(
            self.not_applicable, "ConformanceSummary.not_applicable", minimum=0
        )

    @classmethod
    def from_analyses(cls, analyses: tuple[CriterionAnalysis, ...]) -> ConformanceSummary:
        counts = {status: 0 for status in CriterionStatus}
        for analysis in analyses:
            counts[CriterionStatus(analysis.status)] += 1
        return cls(
            supports=counts[CriterionStatus.SUPPORTS],
            partially_supports=counts[CriterionStatus.PARTIALLY_SUPPORTS],
            does_not_support=counts[CriterionStatus.DOES_NOT_SUPPORT],
            not_applicable=counts[CriterionStatus.NOT_APPLICABLE],
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ConformanceSummary:
        parsed = _expect_object(
            data,
            "ConformanceSummary",
            required=set(),
            optional={"supports", "partially_supports", "does_not_support", "not_applicable"},
        )
        return cls(
            supports=_as_int(parsed.get("supports", 0), "ConformanceSummary.supports"),
            partially_supports=_as_int(
                parsed.get("partially_supports", 0), "ConformanceSummary.partially_supports"
            ),
            does_not_support=_as_int(
                parsed.get("does_not_support", 0), "ConformanceSummary.does_not_support"
            ),
            not_applicable=_as_int(
                parsed.get("not_applicable", 0), "ConformanceSummary.not_applicable"
            ),
        )


@dataclass(slots=True)
class OtherIssue(CanonicalModel):
    code: str
    message: str
    severity: Severity | str
    location: str | None = None
    status: OtherIssueStatus | str = OtherIssueStatus.PENDING

    def __post_init__(self) -> None:
        self.code = _as_str(self.code, "OtherIssue.code")
        self.message = _as_str(self.message, "OtherIssue.message", min_len=0)
        self.severity = as_severity(self.severity)
        self.location = _as_optional_str(self.location, "OtherIssue.location")
        self.status = _as_enum(OtherIssueStatus, self.status, "OtherIssue.status")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> OtherIssue:
        parsed = _expect_object(
            data,
            "OtherIssue",
            required={"code", "message"},
            optional={"severity", "location", "status"},
        )
        return cls(
            code=_as_str(parsed["code"], "OtherIssue.code"),
            message=_as_str(parsed["message"], "OtherIssue.message", min_len=0),
            severity=as_severity(parsed.get("severity")),
            location=_as_optional_str(parsed.get("location"), "OtherIssue.location"),
            status=_as_enum(
                OtherIssueStatus,
                parsed.get("status", OtherIssueStatus.PENDING),
                "OtherIssue.status",
            ),
        )


@dataclass(slots=True)
class OtherIssuesBucket(CanonicalModel):
    """Findings that relate to no evaluated criterion; retained so issue totals stay complete."""

    issues: tuple[OtherIssue, ...] = ()
    count: int = field(init=False)
    pending_count: int = field(init=False)
    fixed_count: int = field(init=False)
    failed_count: int = field(init=False)
    skipped_count: int = field(init=False)

    def __post_init__(self) -> None:
        self.issues = _as_model_tuple(self.issues, "OtherIssuesBucket.issues", OtherIssue)
        self.count = len(self.issues)
        self.pending_count = self._count(OtherIssueStatus.PENDING)
        self.fixed_count = self._count(OtherIssueStatus.FIXED)
        self.failed_count = self._count(OtherIssueStatus.FAILED)
        self.skipped_count = self._count(OtherIssueStatus.SKIPPED)

    def _count(self, status: OtherIssueStatus) -> int:
        return sum(1 for issue in self.issues if issue.status == status)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> OtherIssuesBucket:
        parsed = _expect_object(
            data,
            "OtherIssuesBucket",
            required=set(),
            optional={
                "issues",
                "count",
                "pending_count",
                "fixed_count",
                "failed_count",
                "skipped_count",
            },
        )
        return cls(
            issues=_as_model_tuple(
                parsed.get("issues", ()), "OtherIssuesBucket.issues", OtherIssue
            )
        )


@dataclass(slots=True)
class DocumentAnalysis(CanonicalModel):
    document_id: str
    edition: str | None
    criteria: tuple[CriterionAnalysis, ...]
    overall_confidence: int
    summary: ConformanceSummary
    other_issues: OtherIssuesBucket = field(default_factory=OtherIssuesBucket)
    analyzed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.document_id = _as_str(self.document_id, "DocumentAnalysis.document_id")
        self.edition = _as_optional_str(self.edition, "DocumentAnalysis.edition")
        self.criteria = _as_model_tuple(
            self.criteria, "DocumentAnalysis.criteria", CriterionAnalysis
        )
        ids = [item.criterion_id for item in self.criteria]
        if len(set(ids)) != len(ids):
            _fail("DocumentAnalysis.criteria", "criterion ids must be unique")
        self.overall_confidence = _as_int(
            self.overall_confidence, "DocumentAnalysis.overall_confidence", minimum=0, maximum=100
        )
        self.summary = _as_model(self.summary, "DocumentAnalysis.summary", ConformanceSummary)
        self.other_issues = _as_model(
            self.other_issues, "DocumentAnalysis.other_issues", OtherIssuesBucket
        )
        self.analyzed_at = _as_optional_datetime(self.analyzed_at, "DocumentAnalysis.analyzed_at")

    def criterion(self, criterion_id: str) -> CriterionAnalysis | None:
        for item in self.criteria:
            if item.criterion_id == criterion_id:
                return item
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> DocumentAnalysis:
        parsed = _expect_object(
            data,
            "DocumentAnalysis",
            required={"document_id", "criteria", "overall_confidence", "summary"},
            optional={"edition", "other_issues", "analyzed_at"},
        )
        return cls(
            document_id=_as_str(parsed["document_id"], "DocumentAnalysis.document_id"),
            edition=_as_optional_str(parsed.get("edition"), "DocumentAnalysis.edition"),
            criteria=_as_model_tuple(
                parsed["criteria"], "DocumentAnalysis.criteria", CriterionAnalysis
            ),
            overall_confidence=_as_int(
                parsed["overall_confidence"], "DocumentAnalysis.overall_confidence"
            ),
            summary=_as_model(parsed["summary"], "DocumentAnalysis.summary", ConformanceSummary),
            other_issues=_as_model(
                parsed.get("other_issues", {}), "DocumentAnalysis.other_issues", OtherIssuesBucket
            ),
            analyzed_at=_as_optional_datetime(
                parsed.get("analyzed_at"), "DocumentAnalysis.analyzed_at"
            ),
        )


@dataclass(slots=True)
class ProductInfo(CanonicalModel):
    name: str
    version: str
    vendor: str
    contact_email: str
    description: str | None = None
    evaluation_date: datetime | None = None

    def __post_init__(self) -> None:
        self.name = _as_str(self.name, "ProductInfo.name", max_len=512)
        self.version = _as_str(self.version, "ProductInfo.version", max_len=128)
        self.vendor = _as_str(self.vendor, "ProductInfo.vendor", max_len=512)
        self.contact_email = _as_str(self.contact_email, "ProductInfo.contact_email", max_len=320)
        if "@" not in self.contact_email:
            _fail("ProductInfo.contact_email", "must be an email address")
        self.description = _as_optional_str(self.description, "ProductInfo.description")
        self.evaluation_date = _as_optional_datetime(
            self.evaluation_date, "ProductInfo.evaluation_date"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ProductInfo:
        parsed = _expect_object(
            data,
            "ProductInfo",
            required={"name", "version", "vendor", "contact_email"},
            optional={"description", "evaluation_date"},
        )
        return cls(
            name=_as_str(parsed["name"], "ProductInfo.name"),
            version=_as_str(parsed["version"], "ProductInfo.version"),
            vendor=_as_str(parsed["vendor"], "ProductInfo.vendor"),
            contact_email=_as_str(parsed["contact_email"], "ProductInfo.contact_email"),
            description=_as_optional_str(parsed.get("description"), "ProductInfo.description"),
            evaluation_date=_as_optional_datetime(
                parsed.get("evaluation_date"), "ProductInfo.evaluation_date"
            ),
        )


@dataclass(slots=True)
class EvaluationMethod(CanonicalModel):
    type: str
    tools: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        self.type = _as_str(self.type, "EvaluationMethod.type", max_len=64)
        self.tools = _as_str_tuple(
            self.tools, "EvaluationMethod.tools", allow_empty=True, unique=True
        )
        self.description = _as_str(self.description, "EvaluationMethod.description", min_len=0)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> EvaluationMethod:
        parsed = _expect_object(
            data, "EvaluationMethod", required={"type"}, optional={"tools", "description"}
        )
        return cls(
            type=_as_str(parsed["type"], "EvaluationMethod.type"),
            tools=_as_str_tuple(
                parsed.get("tools", ()), "EvaluationMethod.tools", allow_empty=True, unique=True
            ),
            description=_as_str(
                parsed.get("description", ""), "EvaluationMethod.description", min_len=0
            ),
        )


@dataclass(slots=True)
class AcrCriterion(CanonicalModel):
    id: str
    name: str
    level: CriterionLevel | str
    conformance_level: ConformanceLevel | str | None = ConformanceLevel.NOT_APPLICABLE
    remarks: str = ""
    attribution_tag: AttributionTag | str = AttributionTag.AUTOMATED
    attributed_remarks: str = ""

    def __post_init__(self) -> None:
        self.id = _as_str(self.id, "AcrCriterion.id", max_len=32)
        self.name = _as_str(self.name, "AcrCriterion.name")
        self.level = _as_enum(CriterionLevel, self.level, "AcrCriterion.level")
        if self.conformance_level is None:
            self.conformance_level = ConformanceLevel.NOT_APPLICABLE
        self.conformance_level = _as_enum(
            ConformanceLevel, self.conformance_level, "AcrCriterion.conformance_level"
        )
        self.remarks = _as_str(self.remarks, "AcrCriterion.remarks", min_len=0, strip=False)
        self.attribution_tag = _as_enum(
            AttributionTag, self.attribution_tag, "AcrCriterion.attribution_tag"
        )
        self.attributed_remarks = _as_str(
            self.attributed_remarks, "AcrCriterion.attributed_remarks", min_len=0, strip=False
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AcrCriterion:
        parsed = _expect_object(
            data,
            "AcrCriterion",
            required={"id", "name", "level"},
            optional={"conformance_level", "remarks", "attribution_tag", "attributed_remarks"},
        )
        return cls(
            id=_as_str(parsed["id"], "AcrCriterion.id"),
            name=_as_str(parsed["name"], "AcrCriterion.name"),
            level=_as_enum(CriterionLevel, parsed["level"], "AcrCriterion.level"),
            conformance_level=cast(
                "ConformanceLevel | str | None", parsed.get("conformance_level")
            ),
            remarks=_as_str(
                parsed.get("remarks", ""), "AcrCriterion.remarks", min_len=0, strip=False
            ),
            attribution_tag=_as_enum(
                AttributionTag,
                parsed.get("attribution_tag", AttributionTag.AUTOMATED),
                "AcrCriterion.attribution_tag",
            ),
            attributed_remarks=_as_str(
                parsed.get("attributed_remarks", ""),
                "AcrCriterion.attributed_remarks",
                min_len=0,
                strip=False,
            ),
        )


@dataclass(slots=True)
class AcrDocument(CanonicalModel):
    """Self-contained compliance document; stored verbatim as a version snapshot."""

    id: str
    edition: AcrEdition | str
    product_info: ProductInfo
    evaluation_methods: tuple[EvaluationMethod, ...]
    criteria: tuple[AcrCriterion, ...]
    generated_at: datetime
    version: int = 1
    status: DocumentStatus | str = DocumentStatus.DRAFT
    schema_version: int = _SCHEMA_VERSION

    def __post_init__(self) -> None:
        self.schema_version = _as_int(self.schema_version, "AcrDocument.schema_version", minimum=1)
        self.id = _as_str(self.id, "AcrDocument.id", max_len=256)
        self.edition = _as_enum(AcrEdition, self.edition, "AcrDocument.edition")
        self.product_info = _as_model(self.product_info, "AcrDocument.product_info", ProductInfo)
        self.evaluation_methods = _as_model_tuple(
            self.evaluation_methods, "AcrDocument.evaluation_methods", EvaluationMethod
        )
        self.criteria = _as_model_tuple(self.criteria, "AcrDocument.criteria", AcrCriterion)
        seen: set[str] = set()
        for index, criterion in enumerate(self.criteria):
            if criterion.id in seen:
                _fail(f"AcrDocument.criteria[{index}]", f"duplicate criterion id {criterion.id!r}")
            seen.add(criterion.id)
        self.generated_at = _as_datetime(self.generated_at, "AcrDocument.generated_at")
        self.version = _as_int(self.version, "AcrDocument.version", minimum=1)
        self.status = _as_enum(DocumentStatus, self.status, "AcrDocument.status")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AcrDocument:
        parsed = _expect_object(
            data,
            "AcrDocument",
            required={
                "id",
                "edition",
                "product_info",
                "evaluation_methods",
                "criteria",
                "generated_at",
            },
            optional={"version", "status", "schema_version"},
        )
        return cls(
            id=_as_str(parsed["id"], "AcrDocument.id"),
            edition=_as_enum(AcrEdition, parsed["edition"], "AcrDocument.edition"),
            product_info=_as_model(parsed["product_info"], "AcrDocument.product_info", ProductInfo),
            evaluation_methods=_as_model_tuple(
                parsed["evaluation_methods"], "AcrDocument.evaluation_methods", EvaluationMethod
            ),
            criteria=_as_model_tuple(parsed["criteria"], "AcrDocument.criteria", AcrCriterion),
            generated_at=_as_datetime(parsed["generated_at"], "AcrDocument.generated_at"),
            version=_as_int(parsed.get("version", 1), "AcrDocument.version", minimum=1),
            status=_as_enum(
                DocumentStatus,
                parsed.get("status", DocumentStatus.DRAFT),
                "AcrDocument.status",
            ),
            schema_version=_as_int(
                parsed.get("schema_version", _SCHEMA_VERSION),
                "AcrDocument.schema_version",
                minimum=1,
            ),
        )


@dataclass(slots=True)
class PerDocumentDetail(CanonicalModel):
    file_name: str
    job_id: str
    status: ConformanceLevel | str
    issue_count: int
    issues: tuple[IssueDetail, ...] = ()

    def __post_init__(self) -> None:
        self.file_name = _as_str(self.file_name, "PerDocumentDetail.file_name")
        self.job_id = _as_str(self.job_id, "PerDocumentDetail.job_id")
        self.status = _as_enum(ConformanceLevel, self.status, "PerDocumentDetail.status")
        self.issue_count = _as_int(self.issue_count, "PerDocumentDetail.issue_count", minimum=0)
        self.issues = _as_model_tuple(self.issues, "PerDocumentDetail.issues", IssueDetail)


@dataclass(slots=True)
class AggregateCriterion(CanonicalModel):
    criterion_id: str
    criterion_name: str
    level: CriterionLevel | str
    per_document_details: tuple[PerDocumentDetail, ...]
    composite_conformance_level: ConformanceLevel | str
    composite_remarks: str

    def __post_init__(self) -> None:
        self.criterion_id = _as_str(self.criterion_id, "AggregateCriterion.criterion_id")
        self.criterion_name = _as_str(self.criterion_name, "AggregateCriterion.criterion_name")
        self.level = _as_enum(CriterionLevel, self.level, "AggregateCriterion.level")
        self.per_document_details = _as_model_tuple(
            self.per_document_details,
            "AggregateCriterion.per_document_details",
            PerDocumentDetail,
        )
        self.composite_conformance_level = _as_enum(
            ConformanceLevel,
            self.composite_conformance_level,
            "AggregateCriterion.composite_conformance_level",
        )
        self.composite_remarks = _as_str(
            self.composite_remarks, "AggregateCriterion.composite_remarks", min_len=0
        )


@dataclass(slots=True)
class ChangeLogEntry(CanonicalModel):
    field: str
    previous_value: JSONValue
    new_value: JSONValue
    reason: str | None = None

    def __post_init__(self) -> None:
        self.field = _as_str(self.field, "ChangeLogEntry.field")
        self.previous_value = _as_json_value(self.previous_value, "ChangeLogEntry.previous_value")
        self.new_value = _as_json_value(self.new_value, "ChangeLogEntry.new_value")
        self.reason = _as_optional_str(self.reason, "ChangeLogEntry.reason")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ChangeLogEntry:
        parsed = _expect_object(
            data,
            "ChangeLogEntry",
            required={"field", "previous_value", "new_value"},
            optional={"reason"},
        )
        return cls(
            field=_as_str(parsed["field"], "ChangeLogEntry.field"),
            previous_value=_as_json_value(
                parsed["previous_value"], "ChangeLogEntry.previous_value"
            ),
            new_value=_as_json_value(parsed["new_value"], "ChangeLogEntry.new_value"),
            reason=_as_optional_str(parsed.get("reason"), "ChangeLogEntry.reason"),
        )


@dataclass(slots=True)
class AcrVersion(CanonicalModel):
    id: str
    acr_id: str
    version: int
    created_at: datetime
    created_by: str
    change_log: tuple[ChangeLogEntry, ...]
    snapshot: AcrDocument

    def __post_init__(self) -> None:
        self.id = _as_str(self.id, "AcrVersion.id")
        self.acr_id = _as_str(self.acr_id, "AcrVersion.acr_id", max_len=256)
        self.version = _as_int(self.version, "AcrVersion.version", minimum=1)
        self.created_at = _as_datetime(self.created_at, "AcrVersion.created_at")
        self.created_by = _as_str(self.created_by, "AcrVersion.created_by", max_len=256)
        self.change_log = _as_model_tuple(
            self.change_log, "AcrVersion.change_log", ChangeLogEntry
        )
        self.snapshot = _as_model(self.snapshot, "AcrVersion.snapshot", AcrDocument)
        if self.snapshot.version != self.version:
            _fail("AcrVersion.snapshot.version", "must equal AcrVersion.version")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AcrVersion:
        parsed = _expect_object(
            data,
            "AcrVersion",
            required={
                "id",
                "acr_id",
                "version",
                "created_at",
                "created_by",
                "change_log",
                "snapshot",
            },
        )
        return cls(
            id=_as_str(parsed["id"], "AcrVersion.id"),
            acr_id=_as_str(parsed["acr_id"], "AcrVersion.acr_id"),
            version=_as_int(parsed["version"], "AcrVersion.version", minimum=1),
            created_at=_as_datetime(parsed["created_at"], "AcrVersion.created_at"),
            created_by=_as_str(parsed["created_by"], "AcrVersion.created_by"),
            change_log=_as_model_tuple(
                parsed["change_log"], "AcrVersion.change_log", ChangeLogEntry
            ),
            snapshot=_as_model(parsed["snapshot"], "AcrVersion.snapshot", AcrDocument),
        )


@dataclass(slots=True)
class ComparisonSummary(CanonicalModel):
    fields_changed: int
    criteria_changed: int
    status_changed: bool

    def __post_init__(self) -> None:
        self.fields_changed = _as_int(
            self.fields_changed, "ComparisonSummary.fields_changed", minimum=0
        )
        self.criteria_changed = _as_int(
            self.criteria_changed, "ComparisonSummary.criteria_changed", minimum=0
        )
        self.status_changed = _as_bool(self.status_changed, "ComparisonSummary.status_changed")


@dataclass(slots=True)
class VersionComparison(CanonicalModel):
    acr_id: str
    version_a: int
    version_b: int
    changes: tuple[ChangeLogEntry, ...]
    summary: ComparisonSummary

    def __post_init__(self) -> None:
        self.acr_id = _as_str(self.acr_id, "VersionComparison.acr_id")
        self.version_a = _as_int(self.version_a, "VersionComparison.version_a", minimum=1)
        self.version_b = _as_int(self.version_b, "VersionComparison.version_b", minimum=1)
        self.changes = _as_model_tuple(self.changes, "VersionComparison.changes", ChangeLogEntry)
        if not isinstance(self.summary, ComparisonSummary):
            _fail("VersionComparison.summary", "must be ComparisonSummary")


__all__ = [
    "FIXED_REMEDIATION_STATUSES",
    "SEVERITY_ORDER",
    "STATUS_RANK",
    "STATUS_TO_CONFORMANCE",
    "AcrCriterion",
    "AcrDocument",
    "AcrEdition",
    "AcrVersion",
    "AggregateCriterion",
    "AggregationStrategy",
    "AttributionTag",
    "AuditIssue",
    "CanonicalModel",
    "ChangeLogEntry",
    "ComparisonSummary",
    "ConformanceLevel",
    "ConformanceSummary",
    "CriterionAnalysis",
    "CriterionLevel",
    "CriterionStatus",
    "DocumentAnalysis",
    "DocumentStatus",
    "EvaluationMethod",
    "FixMethod",
    "IssueDetail",
    "JSONValue",
    "OtherIssue",
    "OtherIssueStatus",
    "OtherIssuesBucket",
    "PerDocumentDetail",
    "ProductInfo",
    "RemediationRecord",
    "RemediationStatus",
    "Severity",
    "SuccessCriterion",
    "VerificationStatus",
    "VersionComparison",
    "as_severity",
    "canonical_json",
    "datetime_to_iso8601z",
]
