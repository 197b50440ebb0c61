from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from actions.lifecycle_service import end_probation, offboard, promote, start_probation, transfer
from db import SessionLocal
from models import CareerProgression, Employee, Evaluation
from seed import seed_department, seed_employee
from utils import (
    AuthContext,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    TerminalStateError,
    ValidationError,
    new_uuid,
)

ACTOR = AuthContext(valid=True, userId="hr-admin-1", role="HR")


def _history(db, employee_id: str) -> list[CareerProgression]:
    return list(
        db.execute(
            select(CareerProgression).where(CareerProgression.employeeId == employee_id).order_by(CareerProgression.seq)
        ).scalars()
    )


def _evaluations(db, employee_id: str) -> list[Evaluation]:
    return list(db.execute(select(Evaluation).where(Evaluation.employeeId == employee_id)).scalars())


def _reload(db, employee_id: str) -> Employee:
    db.expire_all()
    return db.get(Employee, employee_id)


def test_start_probation_creates_evaluation_and_history(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    res = start_probation(db, emp.id, {"score": 7, "feedback": "Needs mentoring"}, actor=ACTOR, cfg=cfg)
    db.commit()

    assert res.employee.status == "PROBATION"
    evals = _evaluations(db, emp.id)
    assert len(evals) == 1
    assert evals[0].score == 7
    assert evals[0].probation is True
    assert evals[0].feedback == "Needs mentoring"

    rows = _history(db, emp.id)
    assert [r.type for r in rows] == ["PROBATION_START"]
    assert rows[0].previousStatus == "ACTIVE"
    assert rows[0].newStatus == "PROBATION"
    assert rows[0].evaluationId == evals[0].id
    assert res.evaluation is not None and res.evaluation.id == evals[0].id


def test_start_probation_only_from_active(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status="INACTIVE")

    with pytest.raises(InvalidTransitionError):
        start_probation(db, emp.id, {"score": 5}, actor=ACTOR, cfg=cfg)
    db.rollback()

    assert _reload(db, emp.id).status == "INACTIVE"
    assert _history(db, emp.id) == []
    assert _evaluations(db, emp.id) == []


@pytest.mark.parametrize("score", [0, 11, "seven", True])
def test_start_probation_rejects_bad_score(db, cfg, score):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    with pytest.raises(ValidationError) as ei:
        start_probation(db, emp.id, {"score": score}, actor=ACTOR, cfg=cfg)
    assert ei.value.details[0]["field"] == "score"


def test_end_probation_defaults_to_active(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status="PROBATION")

    res = end_probation(db, emp.id, {}, actor=ACTOR, cfg=cfg)
    db.commit()

    assert res.employee.status == "ACTIVE"
    assert res.evaluation is None
    rows = _history(db, emp.id)
    assert len(rows) == 1
    assert rows[0].type == "PROBATION_END"
    assert rows[0].newStatus == "ACTIVE"
    assert _evaluations(db, emp.id) == []


def test_end_probation_with_score_records_closing_evaluation(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status="PROBATION")

    res = end_probation(db, emp.id, {"status": "inactive", "score": 3, "feedback": "Did not meet goals"}, actor=ACTOR, cfg=cfg)
    db.commit()

    assert res.employee.status == "INACTIVE"
    assert res.evaluation is not None
    assert res.history.evaluationId == res.evaluation.id
    assert res.evaluation.probation is False
    assert len(_evaluations(db, emp.id)) == 1


def test_end_probation_only_from_probation(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status="ACTIVE")

    with pytest.raises(InvalidTransitionError):
        end_probation(db, emp.id, {"status": "ACTIVE"}, actor=ACTOR, cfg=cfg)
    db.rollback()

    assert _reload(db, emp.id).status == "ACTIVE"
    assert _history(db, emp.id) == []


def test_end_probation_rejects_unknown_outcome(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status="PROBATION")

    with pytest.raises(ValidationError):
        end_probation(db, emp.id, {"status": "PROBATION"}, actor=ACTOR, cfg=cfg)


def test_offboard_twice_fails_and_changes_nothing(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    first = offboard(db, emp.id, {"reason": "Role eliminated"}, actor=ACTOR, cfg=cfg)
    db.commit()
    assert first.employee.status == "TERMINATED"
    version_after_first = _reload(db, emp.id).version

    with pytest.raises(TerminalStateError):
        offboard(db, emp.id, {"reason": "again"}, actor=ACTOR, cfg=cfg)
    db.rollback()

    after = _reload(db, emp.id)
    assert after.status == "TERMINATED"
    assert after.version == version_after_first
    rows = _history(db, emp.id)
    assert [r.type for r in rows] == ["OFFBOARD"]
    assert rows[0].reason == "Role eliminated"


def test_offboard_refuses_status_override(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    with pytest.raises(ValidationError):
        offboard(db, emp.id, {"status": "RESIGNED"}, actor=ACTOR, cfg=cfg)


@pytest.mark.parametrize("terminal", ["TERMINATED", "RESIGNED"])
@pytest.mark.parametrize(
    "op,payload",
    [
        (promote, {"jobTitle": "Staff Engineer"}),
        (start_probation, {"score": 5}),
        (end_probation, {}),
        (offboard, {}),
    ],
)
def test_terminal_employees_refuse_lifecycle_changes(db, cfg, terminal, op, payload):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, status=terminal)

    with pytest.raises(TerminalStateError):
        op(db, emp.id, payload, actor=ACTOR, cfg=cfg)


def test_unknown_employee_is_not_found(db, cfg):
    with pytest.raises(NotFoundError):
        promote(db, new_uuid(), {"jobTitle": "Lead"}, actor=ACTOR, cfg=cfg)


def test_promote_records_title_and_salary(db, cfg):
    dept = seed_department(db)
    approver = seed_employee(db, department_id=dept.id, job_title="Director")
    emp = seed_employee(db, department_id=dept.id, job_title="Engineer", salary="50000.00")

    res = promote(
        db,
        emp.id,
        {
            "jobTitle": "Senior Engineer",
            "salary": 65000,
            "effectiveDate": "2024-07-01",
            "reason": "Annual review",
            "approvedById": approver.id,
        },
        actor=ACTOR,
        cfg=cfg,
    )
    db.commit()

    assert res.employee.jobTitle == "Senior Engineer"
    assert res.employee.status == "ACTIVE"
    row = _history(db, emp.id)[0]
    assert row.type == "PROMOTION"
    assert (row.previousJobTitle, row.newJobTitle) == ("Engineer", "Senior Engineer")
    assert Decimal(row.previousSalary) == Decimal("50000.00")
    assert Decimal(row.newSalary) == Decimal("65000.00")
    assert row.effectiveDate.startswith("2024-07-01")
    assert row.approvedById == approver.id


def test_promote_requires_a_new_title(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id, job_title="Engineer")

    with pytest.raises(ValidationError):
        promote(db, emp.id, {"jobTitle": "Engineer"}, actor=ACTOR, cfg=cfg)
    with pytest.raises(ValidationError):
        promote(db, emp.id, {"jobTitle": "   "}, actor=ACTOR, cfg=cfg)


def test_transfer_changes_department_and_manager(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    manager = seed_employee(db, department_id=ops.id, job_title="Ops Lead")
    emp = seed_employee(db, department_id=eng.id)

    res = transfer(db, emp.id, {"departmentId": ops.id, "managerId": manager.id}, actor=ACTOR, cfg=cfg)
    db.commit()

    assert res.employee.departmentId == ops.id
    assert res.employee.managerId == manager.id
    row = res.history
    assert row.type == "TRANSFER"
    assert (row.previousDepartmentId, row.newDepartmentId) == (eng.id, ops.id)
    assert (row.previousManagerId, row.newManagerId) == (None, manager.id)


def test_transfer_to_unknown_department_writes_nothing(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    with pytest.raises(ValidationError):
        transfer(db, emp.id, {"departmentId": new_uuid()}, actor=ACTOR, cfg=cfg)
    db.rollback()

    after = _reload(db, emp.id)
    assert after.departmentId == dept.id
    assert after.version == 1
    assert _history(db, emp.id) == []


def test_transfer_rejects_self_management(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    emp = seed_employee(db, department_id=eng.id)

    with pytest.raises(ValidationError):
        transfer(db, emp.id, {"departmentId": ops.id, "managerId": emp.id}, actor=ACTOR, cfg=cfg)


def test_transfer_rejects_management_cycle(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    lead = seed_employee(db, department_id=eng.id, job_title="Lead")
    report = seed_employee(db, department_id=eng.id, manager_id=lead.id)
    grand_report = seed_employee(db, department_id=eng.id, manager_id=report.id)

    with pytest.raises(ValidationError) as ei:
        transfer(db, lead.id, {"departmentId": ops.id, "managerId": grand_report.id}, actor=ACTOR, cfg=cfg)
    assert "cycle" in ei.value.message


@pytest.mark.parametrize("manager_status", ["INACTIVE", "TERMINATED", "RESIGNED"])
def test_transfer_requires_active_manager(db, cfg, manager_status):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    manager = seed_employee(db, department_id=ops.id, status=manager_status)
    emp = seed_employee(db, department_id=eng.id)

    with pytest.raises(ValidationError):
        transfer(db, emp.id, {"departmentId": ops.id, "managerId": manager.id}, actor=ACTOR, cfg=cfg)


def test_transfer_accepts_manager_on_probation(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    manager = seed_employee(db, department_id=ops.id, status="PROBATION")
    emp = seed_employee(db, department_id=eng.id)

    res = transfer(db, emp.id, {"departmentId": ops.id, "managerId": manager.id}, actor=ACTOR, cfg=cfg)
    assert res.employee.managerId == manager.id


def test_transfer_without_manager_keeps_current_manager(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    manager = seed_employee(db, department_id=eng.id, job_title="Lead")
    emp = seed_employee(db, department_id=eng.id, manager_id=manager.id)

    res = transfer(db, emp.id, {"departmentId": ops.id}, actor=ACTOR, cfg=cfg)
    assert res.employee.managerId == manager.id

    other = seed_employee(db, department_id=eng.id, manager_id=manager.id)
    res2 = transfer(db, other.id, {"departmentId": ops.id, "managerId": None}, actor=ACTOR, cfg=cfg)
    assert res2.employee.managerId is None


def test_status_is_the_cumulative_effect_of_history(db, cfg):
    dept = seed_department(db)
    other = seed_department(db, "Support")
    emp = seed_employee(db, department_id=dept.id)

    promote(db, emp.id, {"jobTitle": "Senior Engineer"}, actor=ACTOR, cfg=cfg)
    start_probation(db, emp.id, {"score": 6}, actor=ACTOR, cfg=cfg)
    transfer(db, emp.id, {"departmentId": other.id}, actor=ACTOR, cfg=cfg)
    end_probation(db, emp.id, {"status": "INACTIVE"}, actor=ACTOR, cfg=cfg)
    offboard(db, emp.id, {}, actor=ACTOR, cfg=cfg)
    db.commit()

    rows = _history(db, emp.id)
    assert [r.seq for r in rows] == [1, 2, 3, 4, 5]
    assert [r.type for r in rows] == ["PROMOTION", "PROBATION_START", "TRANSFER", "PROBATION_END", "OFFBOARD"]

    status = "ACTIVE"
    for r in rows:
        assert r.previousStatus == status
        status = r.newStatus
    assert status == _reload(db, emp.id).status == "TERMINATED"

    count = db.execute(select(func.count()).select_from(CareerProgression).where(CareerProgression.employeeId == emp.id)).scalar_one()
    assert count == 5


def test_transfer_within_same_department_is_recorded(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)

    res = transfer(db, emp.id, {"departmentId": dept.id, "reason": "Team rebalancing"}, actor=ACTOR, cfg=cfg)
    db.commit()

    assert res.employee.departmentId == dept.id
    assert (res.history.previousDepartmentId, res.history.newDepartmentId) == (dept.id, dept.id)
    assert [r.type for r in _history(db, emp.id)] == ["TRANSFER"]


def test_lifecycle_change_on_stale_row_is_refused(db, cfg):
    dept = seed_department(db)
    emp = seed_employee(db, department_id=dept.id)
    assert db.get(Employee, emp.id).version == 1

    other = SessionLocal()
    try:
        promote(other, emp.id, {"jobTitle": "Senior Engineer"}, actor=ACTOR, cfg=cfg)
        other.commit()
    finally:
        other.close()

    # `db` still holds the version-1 row; its write must not overwrite the promotion.
    with pytest.raises(PersistenceError) as ei:
        offboard(db, emp.id, {"reason": "Restructure"}, actor=ACTOR, cfg=cfg)
    assert ei.value.code == "CONCURRENT_MODIFICATION"
    assert ei.value.http_status == 409
    db.rollback()

    after = _reload(db, emp.id)
    assert (after.status, after.jobTitle, after.version) == ("ACTIVE", "Senior Engineer", 2)
    assert [r.type for r in _history(db, emp.id)] == ["PROMOTION"]

    offboard(db, emp.id, {"reason": "Restructure"}, actor=ACTOR, cfg=cfg)
    db.commit()
    rows = _history(db, emp.id)
    assert [(r.seq, r.type) for r in rows] == [(1, "PROMOTION"), (2, "OFFBOARD")]
    assert rows[1].previousStatus == "ACTIVE"
    assert _reload(db, emp.id).status == "TERMINATED"
