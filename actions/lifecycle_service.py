from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from actions import history
from actions.helpers import serialize_employee, serialize_evaluation, serialize_progression
from actions.hr_repo import HrRepository
from actions.validation import (
    FieldError,
    check_department_exists,
    check_employee_reference,
    check_manager_assignment,
    require_id,
    validate_end_probation,
    validate_offboard,
    validate_promote,
    validate_start_probation,
    validate_transfer,
)
from cache_layer import EMPLOYEE_NS, defer_invalidation
from models import TERMINAL_EMPLOYEE_STATUSES, CareerProgression, Employee, Evaluation
from utils import (
    AuthContext,
    InvalidTransitionError,
    NotFoundError,
    SYSTEM_ACTOR,
    TerminalStateError,
    ValidationError,
    iso_utc_now,
)


_log = logging.getLogger("lifecycle")


@dataclass
class TransitionResult:
    employee: Employee
    history: CareerProgression
    evaluation: Optional[Evaluation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee": serialize_employee(self.employee),
            "history": serialize_progression(self.history),
            "evaluation": serialize_evaluation(self.evaluation) if self.evaluation is not None else None,
        }


def _tz(cfg) -> str:
    return str(getattr(cfg, "APP_TIMEZONE", "") or "UTC")


def _max_depth(cfg) -> int:
    return int(getattr(cfg, "MANAGER_CHAIN_MAX_DEPTH", 64) or 64)


def lock_employee(repo: HrRepository, employee_id: Any) -> Employee:
    """Row-lock an employee for a lifecycle operation; terminal employees are refused."""

    eid = require_id(employee_id, "employeeId")
    emp = repo.get_employee(eid, lock=True)
    if not emp:
        raise NotFoundError("Employee not found")
    status = str(emp.status or "").upper()
    if status in TERMINAL_EMPLOYEE_STATUSES:
        raise TerminalStateError(f"Employee is {status}; no further lifecycle changes are allowed", state=status)
    return emp


def _finish(db, repo: HrRepository, emp: Employee, now: str) -> None:
    emp.updatedAt = now
    repo.save_employee(emp)
    defer_invalidation(db, EMPLOYEE_NS, emp.id)


def promote(db, employee_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> TransitionResult:
    inp = validate_promote(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = lock_employee(repo, employee_id)

    if inp.job_title == str(emp.jobTitle or ""):
        raise ValidationError(
            "Promotion must change the job title",
            details=[FieldError("jobTitle", "must differ from the current job title").to_dict()],
        )
    check_employee_reference(repo, inp.approved_by_id, field="approvedById")

    now = iso_utc_now()
    prev_title = emp.jobTitle
    prev_salary = emp.salary
    emp.jobTitle = inp.job_title
    if inp.salary is not None:
        emp.salary = inp.salary
    _finish(db, repo, emp, now)

    row = history.record(
        db,
        history.EMPLOYEE,
        emp.id,
        "PROMOTION",
        {
            "effectiveDate": inp.effective_date,
            "previousStatus": emp.status,
            "newStatus": emp.status,
            "previousJobTitle": prev_title,
            "newJobTitle": emp.jobTitle,
            "previousSalary": prev_salary if inp.salary is not None else None,
            "newSalary": inp.salary,
            "reason": inp.reason,
            "approvedById": inp.approved_by_id,
        },
        actor=actor,
        repo=repo,
    )
    _log.info("promote employee=%s from=%r to=%r", emp.id, prev_title, emp.jobTitle)
    return TransitionResult(emp, row)


def transfer(db, employee_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> TransitionResult:
    inp = validate_transfer(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = lock_employee(repo, employee_id)

    check_department_exists(repo, inp.department_id)
    if inp.manager_given:
        check_manager_assignment(repo, employee_id=emp.id, manager_id=inp.manager_id, max_depth=_max_depth(cfg))
        new_manager = inp.manager_id
    else:
        new_manager = emp.managerId
    check_employee_reference(repo, inp.approved_by_id, field="approvedById")

    now = iso_utc_now()
    prev_dept, prev_manager = emp.departmentId, emp.managerId
    emp.departmentId = inp.department_id
    emp.managerId = new_manager
    _finish(db, repo, emp, now)

    row = history.record(
        db,
        history.EMPLOYEE,
        emp.id,
        "TRANSFER",
        {
            "effectiveDate": inp.effective_date,
            "previousStatus": emp.status,
            "newStatus": emp.status,
            "previousDepartmentId": prev_dept,
            "newDepartmentId": emp.departmentId,
            "previousManagerId": prev_manager,
            "newManagerId": emp.managerId,
            "reason": inp.reason,
            "approvedById": inp.approved_by_id,
        },
        actor=actor,
        repo=repo,
    )
    _log.info("transfer employee=%s dept=%s->%s manager=%s->%s", emp.id, prev_dept, emp.departmentId, prev_manager, emp.managerId)
    return TransitionResult(emp, row)


def start_probation(db, employee_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> TransitionResult:
    inp = validate_start_probation(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = lock_employee(repo, employee_id)

    status = str(emp.status or "").upper()
    if status != "ACTIVE":
        raise InvalidTransitionError(
            f"Probation can only start for an ACTIVE employee (current: {status})",
            from_state=status,
            to_state="PROBATION",
        )
    check_employee_reference(repo, inp.evaluator_id, field="evaluatorId")

    now = iso_utc_now()
    emp.status = "PROBATION"
    _finish(db, repo, emp, now)

    evaluation = history.record(
        db,
        history.EVALUATION,
        emp.id,
        "PROBATION",
        {
            "evaluatorId": inp.evaluator_id,
            "date": inp.date,
            "score": inp.score,
            "feedback": inp.feedback,
            "probation": True,
        },
        actor=actor,
        repo=repo,
    )
    row = history.record(
        db,
        history.EMPLOYEE,
        emp.id,
        "PROBATION_START",
        {
            "effectiveDate": inp.date,
            "previousStatus": status,
            "newStatus": "PROBATION",
            "reason": inp.feedback,
            "evaluationId": evaluation.id,
        },
        actor=actor,
        repo=repo,
    )
    _log.info("probation start employee=%s score=%s", emp.id, inp.score)
    return TransitionResult(emp, row, evaluation)


def end_probation(db, employee_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> TransitionResult:
    inp = validate_end_probation(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = lock_employee(repo, employee_id)

    status = str(emp.status or "").upper()
    if status != "PROBATION":
        raise InvalidTransitionError(
            f"Employee is not on probation (current: {status})",
            from_state=status,
            to_state=inp.status,
        )
    check_employee_reference(repo, inp.evaluator_id, field="evaluatorId")

    now = iso_utc_now()
    emp.status = inp.status
    _finish(db, repo, emp, now)

    evaluation = None
    if inp.score is not None:
        # Closing review, not a probation-period evaluation.
        evaluation = history.record(
            db,
            history.EVALUATION,
            emp.id,
            "PROBATION_CLOSE",
            {
                "evaluatorId": inp.evaluator_id,
                "date": inp.date,
                "score": inp.score,
                "feedback": inp.feedback,
                "probation": False,
            },
            actor=actor,
            repo=repo,
        )
    row = history.record(
        db,
        history.EMPLOYEE,
        emp.id,
        "PROBATION_END",
        {
            "effectiveDate": inp.date,
            "previousStatus": status,
            "newStatus": inp.status,
            "reason": inp.feedback,
            "evaluationId": evaluation.id if evaluation is not None else None,
        },
        actor=actor,
        repo=repo,
    )
    _log.info("probation end employee=%s outcome=%s", emp.id, inp.status)
    return TransitionResult(emp, row, evaluation)


def offboard(db, employee_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> TransitionResult:
    inp = validate_offboard(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = lock_employee(repo, employee_id)
    check_employee_reference(repo, inp.approved_by_id, field="approvedById")

    now = iso_utc_now()
    status = str(emp.status or "").upper()
    emp.status = "TERMINATED"
    _finish(db, repo, emp, now)

    row = history.record(
        db,
        history.EMPLOYEE,
        emp.id,
        "OFFBOARD",
        {
            "effectiveDate": inp.effective_date,
            "previousStatus": status,
            "newStatus": "TERMINATED",
            "reason": inp.reason,
            "approvedById": inp.approved_by_id,
        },
        actor=actor,
        repo=repo,
    )
    _log.info("offboard employee=%s from=%s", emp.id, status)
    return TransitionResult(emp, row)


# -- action entry points (dispatch signature) ------------------------------------


def _run(fn, data, auth, db, cfg) -> dict[str, Any]:
    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    return fn(db, employee_id, payload, actor=auth or SYSTEM_ACTOR, cfg=cfg).to_dict()


def employee_promote(data, auth: AuthContext | None, db, cfg):
    return _run(promote, data, auth, db, cfg)


def employee_transfer(data, auth: AuthContext | None, db, cfg):
    return _run(transfer, data, auth, db, cfg)


def employee_probation_start(data, auth: AuthContext | None, db, cfg):
    return _run(start_probation, data, auth, db, cfg)


def employee_probation_end(data, auth: AuthContext | None, db, cfg):
    return _run(end_probation, data, auth, db, cfg)


def employee_offboard(data, auth: AuthContext | None, db, cfg):
    return _run(offboard, data, auth, db, cfg)
