"""
Candidate pipeline: stage graph, scoring and hire conversion.

Stages move strictly forward along APPLIED -> SCREENING -> INTERVIEW -> OFFER -> HIRED,
with REJECTED reachable from every non-terminal stage. Reaching HIRED always goes through
`hire_candidate`, which creates the Employee in the same transaction; a stage update to
HIRED hires with the job posting's title and department.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from actions import history
from actions.helpers import append_audit, serialize_candidate, serialize_employee, serialize_stage_history
from actions.hr_repo import HrRepository
from actions.validation import (
    FieldError,
    check_department_exists,
    check_manager_assignment,
    require_id,
    validate_hire,
    validate_score,
    validate_stage_update,
)
from cache_layer import CANDIDATE_NS, EMPLOYEE_NS, defer_invalidation
from models import CANDIDATE_STAGES, TERMINAL_CANDIDATE_STAGES, Candidate, CandidateStageHistory, Employee
from utils import (
    AuthContext,
    InvalidTransitionError,
    NotFoundError,
    SYSTEM_ACTOR,
    TerminalStateError,
    ValidationError,
    iso_utc_now,
    new_uuid,
)


_log = logging.getLogger("pipeline")

NEXT_STAGES: dict[str, frozenset[str]] = {
    "APPLIED": frozenset({"SCREENING", "REJECTED"}),
    "SCREENING": frozenset({"INTERVIEW", "REJECTED"}),
    "INTERVIEW": frozenset({"OFFER", "REJECTED"}),
    "OFFER": frozenset({"HIRED", "REJECTED"}),
    "HIRED": frozenset(),
    "REJECTED": frozenset(),
}

HIRE_REASON = "Converted to employee"


def get_next_stages(stage: Any) -> frozenset[str]:
    st = str(stage or "").strip().upper()
    if st not in NEXT_STAGES:
        raise ValidationError(
            "Unknown candidate stage",
            details=[FieldError("stage", f"must be one of {', '.join(CANDIDATE_STAGES)}").to_dict()],
        )
    return NEXT_STAGES[st]


@dataclass
class StageResult:
    candidate: Candidate
    history: CandidateStageHistory
    employee: Optional[Employee] = None

    def to_dict(self) -> dict[str, Any]:
        out = {"candidate": serialize_candidate(self.candidate), "history": serialize_stage_history(self.history)}
        if self.employee is not None:
            out["employee"] = serialize_employee(self.employee)
        return out


@dataclass
class HireResult:
    candidate: Candidate
    employee: Employee
    history: CandidateStageHistory

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate": serialize_candidate(self.candidate),
            "employee": serialize_employee(self.employee),
            "history": serialize_stage_history(self.history),
        }


def _tz(cfg) -> str:
    return str(getattr(cfg, "APP_TIMEZONE", "") or "UTC")


def lock_candidate(repo: HrRepository, candidate_id: Any) -> Candidate:
    cid = require_id(candidate_id, "candidateId")
    cand = repo.get_candidate(cid, lock=True)
    if not cand:
        raise NotFoundError("Candidate not found")
    return cand


def _save(db, repo: HrRepository, cand: Candidate, now: str) -> None:
    cand.updatedAt = now
    repo.save_candidate(cand)
    defer_invalidation(db, CANDIDATE_NS, cand.id)


def update_stage(db, candidate_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> StageResult:
    inp = validate_stage_update(payload).unwrap()
    repo = HrRepository(db)
    cand = lock_candidate(repo, candidate_id)

    current = str(cand.stage or "").upper()
    target = inp.stage
    if target not in get_next_stages(current):
        raise InvalidTransitionError(
            f"Cannot move candidate from {current} to {target}",
            from_state=current,
            to_state=target,
        )
    if target == "HIRED":
        hired = hire_candidate(db, cand.id, {}, actor=actor, cfg=cfg)
        return StageResult(hired.candidate, hired.history, hired.employee)

    now = iso_utc_now()
    cand.stage = target
    _save(db, repo, cand, now)

    row = history.record(
        db,
        history.CANDIDATE,
        cand.id,
        target,
        {"fromStage": current, "toStage": target, "reason": inp.reason},
        actor=actor,
        repo=repo,
    )
    _log.info("stage candidate=%s %s->%s", cand.id, current, target)
    return StageResult(cand, row)


def set_score(db, candidate_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> Candidate:
    inp = validate_score(payload).unwrap()
    repo = HrRepository(db)
    cand = lock_candidate(repo, candidate_id)

    stage = str(cand.stage or "").upper()
    if stage in TERMINAL_CANDIDATE_STAGES:
        raise TerminalStateError(f"Candidate is {stage}; scoring is closed", state=stage)

    now = iso_utc_now()
    prev_score = cand.score
    cand.score = inp.score
    if inp.feedback:
        cand.feedback = inp.feedback
    _save(db, repo, cand, now)

    append_audit(
        db,
        entityType="CANDIDATE",
        entityId=cand.id,
        action="SCORE_SET",
        actor=actor or SYSTEM_ACTOR,
        fromState=stage,
        toState=stage,
        stageTag="CANDIDATE_SCORE",
        remark=inp.feedback,
        at=now,
        before={"score": prev_score},
        after={"score": cand.score},
    )
    _log.info("score candidate=%s %s->%s", cand.id, prev_score, cand.score)
    return cand


def hire_candidate(db, candidate_id: Any, payload: Any, *, actor: Optional[AuthContext] = None, cfg=None) -> HireResult:
    inp = validate_hire(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)
    cand = lock_candidate(repo, candidate_id)

    stage = str(cand.stage or "").upper()
    if stage in TERMINAL_CANDIDATE_STAGES:
        raise TerminalStateError(f"Candidate is already {stage}", state=stage)
    if stage != "OFFER":
        raise InvalidTransitionError(
            f"Only candidates at OFFER can be hired (current: {stage})",
            from_state=stage,
            to_state="HIRED",
        )

    job = repo.get_job_posting(cand.jobPostingId)
    if not job:
        raise NotFoundError("Job posting not found")

    department_id = inp.department_id or job.departmentId
    check_department_exists(repo, department_id)
    check_manager_assignment(
        repo,
        employee_id=None,
        manager_id=inp.manager_id,
        max_depth=int(getattr(cfg, "MANAGER_CHAIN_MAX_DEPTH", 64) or 64),
    )
    if repo.find_employee_by_email(cand.email):
        raise ValidationError(
            "An employee with this email already exists",
            details=[FieldError("email", "candidate email is already used by an employee").to_dict()],
        )

    now = iso_utc_now()
    emp = Employee(
        id=new_uuid(),
        firstName=cand.firstName,
        lastName=cand.lastName,
        email=str(cand.email or "").lower(),
        phone=cand.phone or "",
        status="ACTIVE",
        jobType=inp.job_type,
        jobTitle=inp.job_title or job.title,
        departmentId=department_id,
        managerId=inp.manager_id,
        salary=inp.salary,
        hireDate=inp.hire_date or now,
        candidateId=cand.id,
        createdAt=now,
        updatedAt=now,
    )
    repo.save_employee(emp)

    cand.stage = "HIRED"
    cand.employeeId = emp.id
    _save(db, repo, cand, now)
    defer_invalidation(db, EMPLOYEE_NS, emp.id)

    row = history.record(
        db,
        history.CANDIDATE,
        cand.id,
        "HIRED",
        {"fromStage": stage, "toStage": "HIRED", "reason": HIRE_REASON, "employeeId": emp.id},
        actor=actor,
        repo=repo,
    )
    append_audit(
        db,
        entityType="EMPLOYEE",
        entityId=emp.id,
        action="HIRE_CONVERSION",
        actor=actor or SYSTEM_ACTOR,
        fromState="",
        toState="ACTIVE",
        stageTag="EMPLOYEE_CREATE",
        remark=HIRE_REASON,
        at=now,
        meta={"candidateId": cand.id, "jobPostingId": cand.jobPostingId},
    )
    _log.info("hire candidate=%s employee=%s title=%r dept=%s", cand.id, emp.id, emp.jobTitle, emp.departmentId)
    return HireResult(cand, emp, row)


# -- action entry points (dispatch signature) ------------------------------------


def _split(data) -> tuple[str, dict[str, Any]]:
    payload = dict(data or {})
    return payload.pop("candidateId", ""), payload


def candidate_stage_update(data, auth: AuthContext | None, db, cfg):
    cid, payload = _split(data)
    return update_stage(db, cid, payload, actor=auth or SYSTEM_ACTOR, cfg=cfg).to_dict()


def candidate_score_set(data, auth: AuthContext | None, db, cfg):
    cid, payload = _split(data)
    return {"candidate": serialize_candidate(set_score(db, cid, payload, actor=auth or SYSTEM_ACTOR, cfg=cfg))}


def candidate_hire(data, auth: AuthContext | None, db, cfg):
    cid, payload = _split(data)
    return hire_candidate(db, cid, payload, actor=auth or SYSTEM_ACTOR, cfg=cfg).to_dict()


def candidate_stages_get(data, auth: AuthContext | None, db, cfg):
    cid = require_id((data or {}).get("candidateId"), "candidateId")
    repo = HrRepository(db)
    cand = repo.get_candidate(cid)
    if not cand:
        raise NotFoundError("Candidate not found")

    stage = str(cand.stage or "").upper()
    return {
        "candidateId": cand.id,
        "stage": stage,
        "nextStages": sorted(get_next_stages(stage)),
        "history": [serialize_stage_history(r) for r in repo.list_stage_history(cand.id)],
    }
