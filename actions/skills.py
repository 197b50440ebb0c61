from __future__ import annotations

from typing import Any

from actions.helpers import append_audit, serialize_certification, serialize_skill, serialize_skill_assignment
from actions.hr_repo import HrRepository
from actions.validation import (
    FieldError,
    require_id,
    validate_certification,
    validate_skill,
    validate_skill_assignment,
    validate_skill_level,
)
from models import Certification, Employee, Skill, SkillAssignment
from utils import AuthContext, NotFoundError, SYSTEM_ACTOR, ValidationError, iso_utc_now, new_uuid


def _tz(cfg) -> str:
    return str(getattr(cfg, "APP_TIMEZONE", "") or "UTC")


def _employee_or_404(repo: HrRepository, employee_id: Any) -> Employee:
    emp = repo.get_employee(require_id(employee_id, "employeeId"))
    if not emp:
        raise NotFoundError("Employee not found")
    return emp


def _assignment_of(repo: HrRepository, emp: Employee, assignment_id: Any) -> SkillAssignment:
    row = repo.get_skill_assignment(require_id(assignment_id, "assignmentId"))
    # ids from another employee's profile are treated as unknown
    if not row or row.employeeId != emp.id:
        raise NotFoundError("Skill assignment not found")
    return row


# -- skill catalog ----------------------------------------------------------------


def skill_list(data, auth: AuthContext | None, db, cfg):
    rows = HrRepository(db).list_skills()
    return {"items": [serialize_skill(s) for s in rows], "total": len(rows)}


def skill_create(data, auth: AuthContext | None, db, cfg):
    inp = validate_skill(data).unwrap()
    repo = HrRepository(db)
    if repo.find_skill_by_name(inp.name):
        raise ValidationError(
            "Skill already exists",
            details=[FieldError("name", "a skill with this name already exists").to_dict()],
        )

    now = iso_utc_now()
    skill = Skill(id=new_uuid(), name=inp.name, category=inp.category, createdAt=now)
    db.add(skill)
    repo.flush()

    append_audit(
        db,
        entityType="SKILL",
        entityId=skill.id,
        action="SKILL_CREATE",
        actor=auth or SYSTEM_ACTOR,
        at=now,
        after=serialize_skill(skill),
    )
    return serialize_skill(skill)


# -- employee skills --------------------------------------------------------------


def employee_skills_list(data, auth: AuthContext | None, db, cfg):
    repo = HrRepository(db)
    emp = _employee_or_404(repo, (data or {}).get("employeeId"))
    items = [serialize_skill_assignment(a, s) for a, s in repo.list_skill_assignments(emp.id)]
    return {"employeeId": emp.id, "items": items}


def employee_skill_add(data, auth: AuthContext | None, db, cfg):
    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    inp = validate_skill_assignment(payload).unwrap()
    repo = HrRepository(db)
    emp = _employee_or_404(repo, employee_id)

    skill = repo.get_skill(inp.skill_id)
    if not skill:
        raise ValidationError(
            "Skill not found",
            details=[FieldError("skillId", f"skill {inp.skill_id} does not exist").to_dict()],
        )
    if repo.find_skill_assignment(emp.id, skill.id):
        raise ValidationError(
            "Skill already assigned",
            details=[FieldError("skillId", "employee already has this skill; update the level instead").to_dict()],
        )

    now = iso_utc_now()
    row = SkillAssignment(id=new_uuid(), employeeId=emp.id, skillId=skill.id, level=inp.level, createdAt=now, updatedAt=now)
    db.add(row)
    repo.flush()

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_SKILL_ADD",
        actor=auth or SYSTEM_ACTOR,
        stageTag="EMPLOYEE_SKILLS",
        at=now,
        after=serialize_skill_assignment(row),
    )
    return serialize_skill_assignment(row, skill)


def employee_skill_update(data, auth: AuthContext | None, db, cfg):
    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    assignment_id = payload.pop("assignmentId", "")
    level = validate_skill_level(payload).unwrap()
    repo = HrRepository(db)
    emp = _employee_or_404(repo, employee_id)
    row = _assignment_of(repo, emp, assignment_id)

    before = serialize_skill_assignment(row)
    row.level = level
    row.updatedAt = iso_utc_now()
    repo.flush()

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_SKILL_UPDATE",
        actor=auth or SYSTEM_ACTOR,
        stageTag="EMPLOYEE_SKILLS",
        at=row.updatedAt,
        before=before,
        after=serialize_skill_assignment(row),
    )
    return serialize_skill_assignment(row, repo.get_skill(row.skillId))


def employee_skill_remove(data, auth: AuthContext | None, db, cfg):
    d = data or {}
    repo = HrRepository(db)
    emp = _employee_or_404(repo, d.get("employeeId"))
    row = _assignment_of(repo, emp, d.get("assignmentId"))

    before = serialize_skill_assignment(row)
    repo.delete(row)
    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_SKILL_REMOVE",
        actor=auth or SYSTEM_ACTOR,
        stageTag="EMPLOYEE_SKILLS",
        before=before,
    )
    return {"id": before["id"], "removed": True}


# -- certifications ---------------------------------------------------------------


def employee_certifications_list(data, auth: AuthContext | None, db, cfg):
    repo = HrRepository(db)
    emp = _employee_or_404(repo, (data or {}).get("employeeId"))
    return {"employeeId": emp.id, "items": [serialize_certification(c) for c in repo.list_certifications(emp.id)]}


def employee_certification_add(data, auth: AuthContext | None, db, cfg):
    payload = dict(data or {})
    employee_id = payload.pop("employeeId", "")
    inp = validate_certification(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    emp = _employee_or_404(repo, employee_id)

    now = iso_utc_now()
    row = Certification(
        id=new_uuid(),
        employeeId=emp.id,
        name=inp.name,
        issuer=inp.issuer,
        issuedAt=inp.issued_at,
        expiresAt=inp.expires_at,
        createdAt=now,
    )
    db.add(row)
    repo.flush()

    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_CERTIFICATION_ADD",
        actor=auth or SYSTEM_ACTOR,
        stageTag="EMPLOYEE_CERTIFICATIONS",
        at=now,
        after=serialize_certification(row),
    )
    return serialize_certification(row)


def employee_certification_remove(data, auth: AuthContext | None, db, cfg):
    d = data or {}
    repo = HrRepository(db)
    emp = _employee_or_404(repo, d.get("employeeId"))
    row = repo.get_certification(require_id(d.get("certificationId"), "certificationId"))
    if not row or row.employeeId != emp.id:
        raise NotFoundError("Certification not found")

    before = serialize_certification(row)
    repo.delete(row)
    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="EMPLOYEE_CERTIFICATION_REMOVE",
        actor=auth or SYSTEM_ACTOR,
        stageTag="EMPLOYEE_CERTIFICATIONS",
        before=before,
    )
    return {"id": before["id"], "removed": True}
