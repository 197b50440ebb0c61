"""
Input validation for lifecycle and pipeline operations.

Each `validate_*` function turns a loosely-typed JSON payload into a frozen input dataclass
and returns a tagged result: `Valid(value)` or `Invalid(errors)`. Nothing here raises on bad
input; callers decide, usually via `.unwrap()` which raises `ValidationError` with
field-level details. Stateful checks (department exists, manager chain) live at the bottom
and raise directly because they need the repository.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar, Union

from models import CANDIDATE_STAGES, EMPLOYEE_STATUSES, INTERVIEW_STATUSES, JOB_TYPES
from utils import ValidationError, is_uuid, parse_datetime_maybe, to_iso_utc


T = TypeVar("T")

END_PROBATION_TARGETS = ("ACTIVE", "INACTIVE", "TERMINATED", "RESIGNED")
MANAGER_ELIGIBLE_STATUSES = frozenset({"ACTIVE", "PROBATION"})

EVALUATION_SCORE_RANGE = (1, 10)
CANDIDATE_SCORE_RANGE = (0, 100)
INTERVIEW_RATING_RANGE = (1, 10)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
_MISSING = object()


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Invalid:
    errors: tuple[FieldError, ...]

    ok = False

    def unwrap(self):
        raise ValidationError(details=[e.to_dict() for e in self.errors])


Result = Union[Valid[T], Invalid]


class _Fields:
    """Collects typed values and field errors from one payload."""

    def __init__(self, data: Any, *, app_timezone: str = "UTC"):
        self.data = data if isinstance(data, dict) else {}
        self.app_timezone = app_timezone or "UTC"
        self.errors: list[FieldError] = []
        if data is not None and not isinstance(data, dict):
            self.errors.append(FieldError("body", "must be a JSON object"))

    def has(self, name: str) -> bool:
        return name in self.data

    def error(self, name: str, message: str) -> None:
        self.errors.append(FieldError(name, message))

    def _raw(self, name: str) -> Any:
        return self.data.get(name, _MISSING)

    def text(self, name: str, *, required: bool = False, min_len: int = 0, max_len: int = 500) -> Optional[str]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None:
            if required:
                self.error(name, "is required")
            return None
        if not isinstance(raw, str):
            self.error(name, "must be a string")
            return None
        value = raw.strip()
        if required and not value:
            self.error(name, "must not be blank")
            return None
        if value and len(value) < min_len:
            self.error(name, f"must be at least {min_len} characters")
            return None
        if len(value) > max_len:
            self.error(name, f"must be at most {max_len} characters")
            return None
        return value

    def uuid(self, name: str, *, required: bool = False) -> Optional[str]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None or raw == "":
            if required:
                self.error(name, "is required")
            return None
        if not is_uuid(raw):
            self.error(name, "must be a valid UUID")
            return None
        return str(raw).strip().lower()

    def choice(self, name: str, choices: Iterable[str], *, required: bool = False) -> Optional[str]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None or raw == "":
            if required:
                self.error(name, "is required")
            return None
        value = str(raw).strip().upper()
        allowed = tuple(choices)
        if value not in allowed:
            self.error(name, f"must be one of {', '.join(allowed)}")
            return None
        return value

    def integer(self, name: str, *, lo: int, hi: int, required: bool = False) -> Optional[int]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None or raw == "":
            if required:
                self.error(name, "is required")
            return None
        if isinstance(raw, bool):
            self.error(name, "must be an integer")
            return None
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        if isinstance(raw, str) and re.fullmatch(r"-?\d+", raw.strip()):
            raw = int(raw.strip())
        if not isinstance(raw, int):
            self.error(name, "must be an integer")
            return None
        if raw < lo or raw > hi:
            self.error(name, f"must be between {lo} and {hi}")
            return None
        return raw

    def money(self, name: str) -> Optional[Decimal]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None or raw == "":
            return None
        if isinstance(raw, bool):
            self.error(name, "must be a number")
            return None
        try:
            value = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            self.error(name, "must be a number")
            return None
        if not value.is_finite() or value < 0:
            self.error(name, "must be a non-negative number")
            return None
        return value.quantize(Decimal("0.01"))

    def timestamp(self, name: str, *, required: bool = False) -> Optional[str]:
        raw = self._raw(name)
        if raw is _MISSING or raw is None or raw == "":
            if required:
                self.error(name, "is required")
            return None
        dt = parse_datetime_maybe(raw, app_timezone=self.app_timezone)
        if dt is None:
            self.error(name, "must be an ISO date or datetime")
            return None
        return to_iso_utc(dt)

    def boolean(self, name: str, *, default: bool = False) -> bool:
        raw = self._raw(name)
        if raw is _MISSING or raw is None:
            return default
        if not isinstance(raw, bool):
            self.error(name, "must be a boolean")
            return default
        return raw

    def email(self, name: str, *, required: bool = False) -> Optional[str]:
        value = self.text(name, required=required, max_len=254)
        if value and not _EMAIL_RE.fullmatch(value):
            self.error(name, "must be a valid email")
            return None
        return value.lower() if value else value

    def url(self, name: str) -> Optional[str]:
        value = self.text(name, max_len=2000)
        if value and not _URL_RE.fullmatch(value):
            self.error(name, "must be an http(s) URL")
            return None
        return value

    def forbid(self, name: str, message: str) -> None:
        if self.has(name):
            self.error(name, message)

    def result(self, build: Callable[[], T]) -> Result:
        if self.errors:
            return Invalid(tuple(self.errors))
        return Valid(build())


def require_id(value: Any, name: str = "id") -> str:
    """Path ids must be UUIDs; malformed ids never reach the repository."""
    if not is_uuid(value):
        raise ValidationError(details=[FieldError(name, "must be a valid UUID").to_dict()])
    return str(value).strip().lower()


# ---------------------------------------------------------------------------
# Employee lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PromoteInput:
    job_title: str
    salary: Optional[Decimal] = None
    effective_date: Optional[str] = None
    reason: str = ""
    approved_by_id: Optional[str] = None


@dataclass(frozen=True)
class TransferInput:
    department_id: str
    manager_id: Optional[str] = None
    # False when the payload omits managerId: the current manager is kept.
    manager_given: bool = False
    effective_date: Optional[str] = None
    reason: str = ""
    approved_by_id: Optional[str] = None


@dataclass(frozen=True)
class StartProbationInput:
    score: int
    evaluator_id: Optional[str] = None
    feedback: str = ""
    date: Optional[str] = None


@dataclass(frozen=True)
class EndProbationInput:
    status: str = "ACTIVE"
    evaluator_id: Optional[str] = None
    score: Optional[int] = None
    feedback: str = ""
    date: Optional[str] = None


@dataclass(frozen=True)
class OffboardInput:
    reason: str = ""
    approved_by_id: Optional[str] = None
    effective_date: Optional[str] = None


@dataclass(frozen=True)
class EvaluationInput:
    score: int
    evaluator_id: Optional[str] = None
    date: Optional[str] = None
    feedback: str = ""
    probation: bool = False


def validate_promote(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    job_title = f.text("jobTitle", required=True, max_len=200)
    salary = f.money("salary")
    effective_date = f.timestamp("effectiveDate")
    reason = f.text("reason", max_len=2000) or ""
    approved_by_id = f.uuid("approvedById")
    return f.result(lambda: PromoteInput(job_title or "", salary, effective_date, reason, approved_by_id))


def validate_transfer(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    department_id = f.uuid("departmentId", required=True)
    manager_given = f.has("managerId")
    manager_id = f.uuid("managerId")
    effective_date = f.timestamp("effectiveDate")
    reason = f.text("reason", max_len=2000) or ""
    approved_by_id = f.uuid("approvedById")
    return f.result(
        lambda: TransferInput(department_id or "", manager_id, manager_given, effective_date, reason, approved_by_id)
    )


def validate_start_probation(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    evaluator_id = f.uuid("evaluatorId")
    score = f.integer("score", lo=EVALUATION_SCORE_RANGE[0], hi=EVALUATION_SCORE_RANGE[1], required=True)
    feedback = f.text("feedback", max_len=5000) or ""
    date = f.timestamp("date")
    return f.result(lambda: StartProbationInput(int(score or 0), evaluator_id, feedback, date))


def validate_end_probation(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    status = f.choice("status", END_PROBATION_TARGETS) or "ACTIVE"
    evaluator_id = f.uuid("evaluatorId")
    score = f.integer("score", lo=EVALUATION_SCORE_RANGE[0], hi=EVALUATION_SCORE_RANGE[1])
    feedback = f.text("feedback", max_len=5000) or ""
    date = f.timestamp("date")
    return f.result(lambda: EndProbationInput(status, evaluator_id, score, feedback, date))


def validate_offboard(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    f.forbid("status", "offboarding always terminates; status is not accepted")
    reason = f.text("reason", max_len=2000) or ""
    approved_by_id = f.uuid("approvedById")
    effective_date = f.timestamp("effectiveDate")
    return f.result(lambda: OffboardInput(reason, approved_by_id, effective_date))


def validate_evaluation(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    evaluator_id = f.uuid("evaluatorId")
    date = f.timestamp("date")
    score = f.integer("score", lo=EVALUATION_SCORE_RANGE[0], hi=EVALUATION_SCORE_RANGE[1], required=True)
    feedback = f.text("feedback", max_len=5000) or ""
    probation = f.boolean("probation")
    return f.result(lambda: EvaluationInput(int(score or 0), evaluator_id, date, feedback, probation))


# ---------------------------------------------------------------------------
# Employee / department records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DepartmentInput:
    name: str
    description: str = ""


@dataclass(frozen=True)
class EmployeeCreateInput:
    first_name: str
    last_name: str
    email: str
    job_type: str
    job_title: str
    department_id: str
    phone: str = ""
    manager_id: Optional[str] = None
    salary: Optional[Decimal] = None
    hire_date: Optional[str] = None


@dataclass(frozen=True)
class EmployeeUpdateInput:
    changes: dict[str, Any]


def validate_department(data: Any) -> Result:
    f = _Fields(data)
    name = f.text("name", required=True, min_len=2, max_len=200)
    description = f.text("description", max_len=5000) or ""
    return f.result(lambda: DepartmentInput(name or "", description))


def validate_employee_create(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    first_name = f.text("firstName", required=True, min_len=2, max_len=100)
    last_name = f.text("lastName", required=True, min_len=2, max_len=100)
    email = f.email("email", required=True)
    phone = f.text("phone", max_len=40) or ""
    job_type = f.choice("jobType", JOB_TYPES, required=True)
    job_title = f.text("jobTitle", required=True, max_len=200)
    department_id = f.uuid("departmentId", required=True)
    manager_id = f.uuid("managerId")
    salary = f.money("salary")
    hire_date = f.timestamp("hireDate")
    f.forbid("status", "new employees always start ACTIVE")
    return f.result(
        lambda: EmployeeCreateInput(
            first_name or "",
            last_name or "",
            email or "",
            job_type or "",
            job_title or "",
            department_id or "",
            phone,
            manager_id,
            salary,
            hire_date,
        )
    )


_LIFECYCLE_OWNED_FIELDS = {
    "status": "status changes only through lifecycle operations",
    "jobTitle": "job title changes only through promotion",
    "departmentId": "department changes only through transfer",
    "managerId": "manager changes only through transfer",
}


def validate_employee_update(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    for name, message in _LIFECYCLE_OWNED_FIELDS.items():
        f.forbid(name, message)

    changes: dict[str, Any] = {}
    if f.has("firstName"):
        changes["firstName"] = f.text("firstName", required=True, min_len=2, max_len=100)
    if f.has("lastName"):
        changes["lastName"] = f.text("lastName", required=True, min_len=2, max_len=100)
    if f.has("phone"):
        changes["phone"] = f.text("phone", max_len=40) or ""
    if f.has("jobType"):
        changes["jobType"] = f.choice("jobType", JOB_TYPES, required=True)
    if f.has("salary"):
        changes["salary"] = f.money("salary")
    if f.has("hireDate"):
        changes["hireDate"] = f.timestamp("hireDate", required=True)
    if not changes and not f.errors:
        f.error("body", "at least one updatable field is required")
    return f.result(lambda: EmployeeUpdateInput(changes))


# ---------------------------------------------------------------------------
# Recruitment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobPostingInput:
    title: str
    description: str
    department_id: str
    is_active: bool = True


@dataclass(frozen=True)
class CandidateCreateInput:
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    resume_url: str = ""


@dataclass(frozen=True)
class StageUpdateInput:
    stage: str
    reason: str = ""


@dataclass(frozen=True)
class ScoreInput:
    score: int
    feedback: str = ""


@dataclass(frozen=True)
class HireInput:
    job_title: Optional[str] = None
    department_id: Optional[str] = None
    manager_id: Optional[str] = None
    salary: Optional[Decimal] = None
    job_type: str = "FULL_TIME"
    hire_date: Optional[str] = None


@dataclass(frozen=True)
class ShortlistInput:
    min_score: int = 0


@dataclass(frozen=True)
class InterviewCreateInput:
    candidate_id: str
    scheduled_at: str
    interviewer_id: Optional[str] = None


@dataclass(frozen=True)
class InterviewUpdateInput:
    scheduled_at: Optional[str] = None
    status: Optional[str] = None
    feedback: Optional[str] = None
    rating: Optional[int] = None


def validate_job_posting(data: Any) -> Result:
    f = _Fields(data)
    title = f.text("title", required=True, min_len=3, max_len=200)
    description = f.text("description", required=True, min_len=10, max_len=20000)
    department_id = f.uuid("departmentId", required=True)
    is_active = f.boolean("isActive", default=True)
    return f.result(lambda: JobPostingInput(title or "", description or "", department_id or "", is_active))


def validate_candidate_create(data: Any) -> Result:
    f = _Fields(data)
    first_name = f.text("firstName", required=True, min_len=2, max_len=100)
    last_name = f.text("lastName", required=True, min_len=2, max_len=100)
    email = f.email("email", required=True)
    phone = f.text("phone", max_len=40) or ""
    resume_url = f.url("resumeUrl") or ""
    f.forbid("stage", "new candidates always start at APPLIED")
    return f.result(lambda: CandidateCreateInput(first_name or "", last_name or "", email or "", phone, resume_url))


def validate_stage_update(data: Any) -> Result:
    f = _Fields(data)
    stage = f.choice("stage", CANDIDATE_STAGES, required=True)
    reason = f.text("reason", max_len=2000) or ""
    return f.result(lambda: StageUpdateInput(stage or "", reason))


def validate_score(data: Any) -> Result:
    f = _Fields(data)
    score = f.integer("score", lo=CANDIDATE_SCORE_RANGE[0], hi=CANDIDATE_SCORE_RANGE[1], required=True)
    feedback = f.text("feedback", max_len=5000) or ""
    return f.result(lambda: ScoreInput(int(score if score is not None else 0), feedback))


def validate_hire(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    job_title = f.text("jobTitle", max_len=200) or None
    department_id = f.uuid("departmentId")
    manager_id = f.uuid("managerId")
    salary = f.money("salary")
    job_type = f.choice("jobType", JOB_TYPES) or "FULL_TIME"
    hire_date = f.timestamp("hireDate") or f.timestamp("startDate")
    return f.result(lambda: HireInput(job_title, department_id, manager_id, salary, job_type, hire_date))


def validate_shortlist(data: Any) -> Result:
    f = _Fields(data)
    min_score = f.integer("minScore", lo=CANDIDATE_SCORE_RANGE[0], hi=CANDIDATE_SCORE_RANGE[1])
    return f.result(lambda: ShortlistInput(int(min_score or 0)))


def validate_interview_create(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    candidate_id = f.uuid("candidateId", required=True)
    interviewer_id = f.uuid("interviewerId")
    scheduled_at = f.timestamp("scheduledAt", required=True)
    return f.result(lambda: InterviewCreateInput(candidate_id or "", scheduled_at or "", interviewer_id))


def validate_interview_update(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    scheduled_at = f.timestamp("scheduledAt")
    status = f.choice("status", INTERVIEW_STATUSES)
    feedback = f.text("feedback", max_len=5000) if f.has("feedback") else None
    rating = f.integer("rating", lo=INTERVIEW_RATING_RANGE[0], hi=INTERVIEW_RATING_RANGE[1])
    if not any(f.has(k) for k in ("scheduledAt", "status", "feedback", "rating")) and not f.errors:
        f.error("body", "at least one field is required")
    return f.result(lambda: InterviewUpdateInput(scheduled_at, status, feedback, rating))


@dataclass(frozen=True)
class JobPostingUpdateInput:
    changes: dict[str, Any]


def validate_job_posting_update(data: Any) -> Result:
    f = _Fields(data)
    changes: dict[str, Any] = {}
    if f.has("title"):
        changes["title"] = f.text("title", required=True, min_len=3, max_len=200)
    if f.has("description"):
        changes["description"] = f.text("description", required=True, min_len=10, max_len=20000)
    if f.has("departmentId"):
        changes["departmentId"] = f.uuid("departmentId", required=True)
    if f.has("isActive"):
        changes["isActive"] = f.boolean("isActive")
    if not changes and not f.errors:
        f.error("body", "at least one updatable field is required")
    return f.result(lambda: JobPostingUpdateInput(changes))


@dataclass(frozen=True)
class KpiRangeInput:
    date_from: Optional[str] = None
    date_to: Optional[str] = None


def validate_kpi_range(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    date_from = f.timestamp("from")
    date_to = f.timestamp("to")
    if date_from and date_to and date_from > date_to:
        f.error("to", "must not be before from")
    return f.result(lambda: KpiRangeInput(date_from, date_to))


# ---------------------------------------------------------------------------
# Directory, skills and certifications
# ---------------------------------------------------------------------------


SKILL_LEVEL_RANGE = (1, 5)
ORG_CHART_DEPTH_RANGE = (1, 10)
DIRECTORY_PAGE_RANGE = (1, 100)


@dataclass(frozen=True)
class DirectorySearchInput:
    q: str = ""
    department_id: Optional[str] = None
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class OrgChartInput:
    root_id: Optional[str] = None
    depth: int = 2


@dataclass(frozen=True)
class SkillInput:
    name: str
    category: str = ""


@dataclass(frozen=True)
class SkillAssignmentInput:
    skill_id: str
    level: int


@dataclass(frozen=True)
class CertificationInput:
    name: str
    issued_at: str
    issuer: str = ""
    expires_at: Optional[str] = None


def validate_directory_search(data: Any) -> Result:
    f = _Fields(data)
    q = f.text("q", max_len=200) or ""
    department_id = f.uuid("departmentId")
    limit = f.integer("limit", lo=DIRECTORY_PAGE_RANGE[0], hi=DIRECTORY_PAGE_RANGE[1])
    offset = f.integer("offset", lo=0, hi=1_000_000)
    return f.result(lambda: DirectorySearchInput(q, department_id, limit or 20, offset or 0))


def validate_org_chart(data: Any) -> Result:
    f = _Fields(data)
    root_id = f.uuid("rootId")
    depth = f.integer("depth", lo=ORG_CHART_DEPTH_RANGE[0], hi=ORG_CHART_DEPTH_RANGE[1])
    return f.result(lambda: OrgChartInput(root_id, depth or 2))


def validate_skill(data: Any) -> Result:
    f = _Fields(data)
    name = f.text("name", required=True, min_len=1, max_len=100)
    category = f.text("category", max_len=100) or ""
    return f.result(lambda: SkillInput(name or "", category))


def validate_skill_assignment(data: Any) -> Result:
    f = _Fields(data)
    skill_id = f.uuid("skillId", required=True)
    level = f.integer("level", lo=SKILL_LEVEL_RANGE[0], hi=SKILL_LEVEL_RANGE[1], required=True)
    return f.result(lambda: SkillAssignmentInput(skill_id or "", int(level or 0)))


def validate_skill_level(data: Any) -> Result:
    f = _Fields(data)
    level = f.integer("level", lo=SKILL_LEVEL_RANGE[0], hi=SKILL_LEVEL_RANGE[1], required=True)
    return f.result(lambda: int(level or 0))


def validate_certification(data: Any, *, app_timezone: str = "UTC") -> Result:
    f = _Fields(data, app_timezone=app_timezone)
    name = f.text("name", required=True, max_len=200)
    issuer = f.text("issuer", max_len=200) or ""
    issued_at = f.timestamp("issuedAt", required=True)
    expires_at = f.timestamp("expiresAt")
    if issued_at and expires_at and expires_at < issued_at:
        f.error("expiresAt", "must not be before issuedAt")
    return f.result(lambda: CertificationInput(name or "", issued_at or "", issuer, expires_at))


# ---------------------------------------------------------------------------
# Stateful checks (repository-backed)
# ---------------------------------------------------------------------------


def check_department_exists(repo, department_id: str, *, field: str = "departmentId"):
    dept = repo.get_department(department_id)
    if not dept:
        raise ValidationError(
            "Department not found",
            details=[FieldError(field, f"department {department_id} does not exist").to_dict()],
        )
    return dept


def check_employee_reference(repo, employee_id: Optional[str], *, field: str):
    """Evaluator / approver references must point at an existing employee."""
    if not employee_id:
        return None
    emp = repo.get_employee(employee_id)
    if not emp:
        raise ValidationError(
            "Referenced employee not found",
            details=[FieldError(field, f"employee {employee_id} does not exist").to_dict()],
        )
    return emp


def check_manager_assignment(repo, *, employee_id: Optional[str], manager_id: Optional[str], max_depth: int = 64):
    """
    A manager must be an existing ACTIVE/PROBATION employee, must not be the employee
    itself, and must not report (directly or transitively) to the employee.
    """

    if not manager_id:
        return None
    if employee_id and manager_id == employee_id:
        raise ValidationError(
            "Employee cannot manage themselves",
            details=[FieldError("managerId", "must not equal the employee id").to_dict()],
        )

    manager = repo.get_employee_manager_candidate(manager_id)
    if not manager:
        raise ValidationError(
            "Manager not found",
            details=[FieldError("managerId", f"employee {manager_id} does not exist").to_dict()],
        )
    if str(manager.status or "").upper() not in MANAGER_ELIGIBLE_STATUSES:
        raise ValidationError(
            "Manager is not an active employee",
            details=[FieldError("managerId", f"manager status is {manager.status}").to_dict()],
        )

    if employee_id:
        chain = repo.manager_chain(manager_id, max_depth=max_depth)
        if employee_id in chain:
            raise ValidationError(
                "Manager assignment would create a management cycle",
                details=[FieldError("managerId", "manager reports to this employee").to_dict()],
            )
    return manager
