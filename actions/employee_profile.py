from __future__ import annotations

from typing import Any

from actions import history
from actions.helpers import (
    append_audit,
    serialize_department,
    serialize_employee,
    serialize_evaluation,
    serialize_progression,
)
from actions.hr_repo import HrRepository
from actions.validation import (
    FieldError,
    check_department_exists,
    check_employee_reference,
    check_manager_assignment,
    require_id,
    validate_department,
    validate_employee_create,
    validate_employee_update,
    validate_evaluation,
)
from cache_layer import EMPLOYEE_NS, cache_get_or_set, defer_invalidation, make_cache_key
from models import EMPLOYEE_STATUSES, TERMINAL_EMPLOYEE_STATUSES, Department, Employee
from utils import AuthContext, NotFoundError, SYSTEM_ACTOR, TerminalStateError, ValidationError, iso_utc_now, new_uuid, redact_for_audit


def _tz(cfg) -> str:
    return str(getattr(cfg, "APP_TIMEZONE", "") or "UTC")


def _employee_or_404(repo: HrRepository, employee_id: Any, *, lock: bool = False) -> Employee:
    emp = repo.get_employee(require_id(employee_id, "employeeId"), lock=lock)
    if not emp:
        raise NotFoundError("Employee not found")
    return emp


# -- departments ----------------------------------------------------------------


def department_create(data, auth: AuthContext | None, db, cfg):
    inp = validate_department(data).unwrap()
    repo = HrRepository(db)
    if repo.find_department_by_name(inp.name):
        raise ValidationError(
            "Department already exists",
            details=[FieldError("name", "a department with this name already exists").to_dict()],
        )

    now = iso_utc_now()
    dept = Department(id=new_uuid(), name=inp.name, description=inp.description, createdAt=now, updatedAt=now)
    db.add(dept)
    repo.flush()

    append_audit(
        db,
        entityType="DEPARTMENT",
        entityId=dept.id,
        action="DEPARTMENT_CREATE",
        actor=auth or SYSTEM_ACTOR,
        at=now,
        after=serialize_department(dept),
    )
    return serialize_department(dept)


def department_list(data, auth: AuthContext | None, db, cfg):
    rows = HrRepository(db).list_departments()
    return {"items": [serialize_department(d) for d in rows], "total": len(rows)}


# -- employees ------------------------------------------------------------------


def employee_create(data, auth: AuthContext | None, db, cfg):
    """Direct hire without a candidate record; the employee starts ACTIVE."""

    inp = validate_employee_create(data, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)

    check_department_exists(repo, inp.department_id)
    check_manager_assignment(
        repo,
        employee_id=None,
        manager_id=inp.manager_id,
        max_depth=int(getattr(cfg, "MANAGER_CHAIN_MAX_DEPTH", 64) or 64),
    )
    if repo.find_employee_by_email(inp.email):
        raise ValidationError(
            "Employee email already exists",
            details=[FieldError("email", "an employee with this email already exists").to_dict()],
        )

    now = iso_utc_now()
    emp = Employee(
        id=new_uuid(),
        firstName=inp.first_name,
        lastName=inp.last_name,
        email=inp.email,
        phone=inp.phone,
        status="ACTIVE",
        jobType=inp.job_type,
        jobTitle=inp.job_title,
        departmentId=inp.department_id,
        managerId=inp.manager_id,
        salary=inp.salary,
        hireDate=inp.hire_date or now,
        createdAt=now,
        updatedAt=now,
    )
    repo.save_employee(emp)

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_CREATE",
        actor=auth or SYSTEM_ACTOR,
        toState="ACTIVE",
        stageTag="EMPLOYEE_CREATE",
        at=now,
        after=redact_for_audit(serialize_employee(emp)),
    )
    return serialize_employee(emp)


def employee_get(data, auth: AuthContext | None, db, cfg):
    eid = require_id((data or {}).get("employeeId"), "employeeId")

    repo = HrRepository(db)
    version = repo.current_version(Employee, eid)
    if version is None:
        raise NotFoundError("Employee not found")

    def _load():
        emp = repo.get_employee(eid)
        return serialize_employee(emp) if emp else None

    out = cache_get_or_set(make_cache_key(EMPLOYEE_NS, eid, "view"), _load, version=version)
    if out is None:
        raise NotFoundError("Employee not found")
    return out


def employee_list(data, auth: AuthContext | None, db, cfg):
    d = data or {}
    status = str(d.get("status") or "").strip().upper()
    if status and status not in EMPLOYEE_STATUSES:
        raise ValidationError(details=[FieldError("status", f"must be one of {', '.join(EMPLOYEE_STATUSES)}").to_dict()])
    department_id = str(d.get("departmentId") or "").strip()
    if department_id:
        department_id = require_id(department_id, "departmentId")
    manager_id = str(d.get("managerId") or "").strip()
    if manager_id:
        manager_id = require_id(manager_id, "managerId")

    rows, total = HrRepository(db).list_employees(
        status=status,
        department_id=department_id,
        manager_id=manager_id,
        search=str(d.get("q") or "").strip(),
        limit=d.get("limit", 50),
        offset=d.get("offset", 0),
    )
    return {"items": [serialize_employee(e) for e in rows], "total": total}


def employee_update(data, auth: AuthContext | None, db, cfg):
    """Profile fields only. Status, title, department and manager belong to lifecycle operations."""

    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    inp = validate_employee_update(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = _employee_or_404(repo, employee_id, lock=True)

    status = str(emp.status or "").upper()
    if status in TERMINAL_EMPLOYEE_STATUSES:
        raise TerminalStateError(f"Employee is {status}; the record is closed", state=status)

    before = serialize_employee(emp)
    for key, value in inp.changes.items():
        setattr(emp, key, value)
    emp.updatedAt = iso_utc_now()
    repo.save_employee(emp)
    defer_invalidation(db, EMPLOYEE_NS, emp.id)

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_UPDATE",
        actor=auth or SYSTEM_ACTOR,
        fromState=status,
        toState=status,
        stageTag="EMPLOYEE_PROFILE",
        at=emp.updatedAt,
        before=redact_for_audit(before),
        after=redact_for_audit(serialize_employee(emp)),
        meta={"fields": sorted(inp.changes)},
    )
    return serialize_employee(emp)


# -- history views --------------------------------------------------------------


def employee_career_history(data, auth: AuthContext | None, db, cfg):
    repo = HrRepository(db)
    emp = _employee_or_404(repo, (data or {}).get("employeeId"))
    rows = repo.list_career_history(emp.id)
    return {"employeeId": emp.id, "status": emp.status, "items": [serialize_progression(r) for r in rows]}


def employee_evaluations_list(data, auth: AuthContext | None, db, cfg):
    repo = HrRepository(db)
    emp = _employee_or_404(repo, (data or {}).get("employeeId"))
    return {"employeeId": emp.id, "items": [serialize_evaluation(r) for r in repo.list_evaluations(emp.id)]}


def employee_evaluation_add(data, auth: AuthContext | None, db, cfg):
    """Regular (non-lifecycle) performance evaluation."""

    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    inp = validate_evaluation(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = _employee_or_404(repo, employee_id)

    status = str(emp.status or "").upper()
    if status in TERMINAL_EMPLOYEE_STATUSES:
        raise TerminalStateError(f"Employee is {status}; evaluations are closed", state=status)
    check_employee_reference(repo, inp.evaluator_id, field="evaluatorId")

    row = history.record(
        db,
        history.EVALUATION,
        emp.id,
        "PROBATION" if inp.probation else "REVIEW",
        {
            "evaluatorId": inp.evaluator_id,
            "date": inp.date,
            "score": inp.score,
            "feedback": inp.feedback,
            "probation": inp.probation,
            "previousStatus": status,
            "newStatus": status,
        },
        actor=auth,
        repo=repo,
    )
    return serialize_evaluation(row)
