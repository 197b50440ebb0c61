from __future__ import annotations

import os
from decimal import Decimal
from typing import Any, Optional

from flask import g, has_request_context

from models import (
    AuditLog,
    Candidate,
    CandidateStageHistory,
    CareerProgression,
    Certification,
    Department,
    Employee,
    Evaluation,
    Interview,
    JobPosting,
    Skill,
    SkillAssignment,
)
from utils import AuthContext, iso_utc_now, safe_json_string


def _correlation_id() -> str:
    if not has_request_context():
        return ""
    return str(getattr(g, "request_id", "") or "")


def append_audit(
    db,
    *,
    entityType: str,
    entityId: str,
    action: str,
    actor: Optional[AuthContext],
    fromState: str = "",
    toState: str = "",
    stageTag: str = "",
    remark: str = "",
    at: str = "",
    before: Any = None,
    after: Any = None,
    meta: Any = None,
) -> AuditLog:
    row = AuditLog(
        logId=f"LOG-{os.urandom(16).hex()}",
        entityType=str(entityType or ""),
        entityId=str(entityId or ""),
        action=str(action or "").upper(),
        fromState=str(fromState or ""),
        toState=str(toState or ""),
        stageTag=str(stageTag or ""),
        remark=str(remark or ""),
        actorUserId=str(actor.userId or "") if actor else "",
        actorRole=str(actor.role or "") if actor else "",
        at=at or iso_utc_now(),
        correlationId=_correlation_id(),
        beforeJson=safe_json_string(before) if before is not None else "",
        afterJson=safe_json_string(after) if after is not None else "",
        metaJson=safe_json_string(meta) if meta is not None else "",
    )
    db.add(row)
    return row


def _money(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def serialize_department(row: Department) -> dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name or "",
        "description": row.description or "",
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }


def serialize_employee(emp: Employee) -> dict[str, Any]:
    return {
        "id": emp.id,
        "firstName": emp.firstName or "",
        "lastName": emp.lastName or "",
        "email": emp.email or "",
        "phone": emp.phone or "",
        "status": emp.status or "",
        "jobType": emp.jobType or "",
        "jobTitle": emp.jobTitle or "",
        "departmentId": emp.departmentId or "",
        "managerId": emp.managerId,
        "salary": _money(emp.salary),
        "hireDate": emp.hireDate or "",
        "candidateId": emp.candidateId or "",
        "version": int(emp.version or 0),
        "createdAt": emp.createdAt or "",
        "updatedAt": emp.updatedAt or "",
    }


def serialize_progression(row: CareerProgression) -> dict[str, Any]:
    return {
        "id": row.id,
        "employeeId": row.employeeId,
        "type": row.type,
        "effectiveDate": row.effectiveDate or "",
        "previousStatus": row.previousStatus or "",
        "newStatus": row.newStatus or "",
        "previousJobTitle": row.previousJobTitle,
        "newJobTitle": row.newJobTitle,
        "previousSalary": _money(row.previousSalary),
        "newSalary": _money(row.newSalary),
        "previousDepartmentId": row.previousDepartmentId,
        "newDepartmentId": row.newDepartmentId,
        "previousManagerId": row.previousManagerId,
        "newManagerId": row.newManagerId,
        "reason": row.reason or "",
        "approvedById": row.approvedById,
        "evaluationId": row.evaluationId,
        "seq": int(row.seq or 0),
        "createdAt": row.createdAt or "",
    }


def serialize_evaluation(row: Evaluation) -> dict[str, Any]:
    return {
        "id": row.id,
        "employeeId": row.employeeId,
        "evaluatorId": row.evaluatorId,
        "date": row.date or "",
        "score": int(row.score),
        "feedback": row.feedback or "",
        "probation": bool(row.probation),
        "createdAt": row.createdAt or "",
    }


def serialize_job_posting(row: JobPosting) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title or "",
        "description": row.description or "",
        "departmentId": row.departmentId,
        "isActive": bool(row.isActive),
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }


def serialize_candidate(cand: Candidate) -> dict[str, Any]:
    return {
        "id": cand.id,
        "jobPostingId": cand.jobPostingId,
        "firstName": cand.firstName or "",
        "lastName": cand.lastName or "",
        "email": cand.email or "",
        "phone": cand.phone or "",
        "resumeUrl": cand.resumeUrl or "",
        "stage": cand.stage or "",
        "score": cand.score,
        "feedback": cand.feedback or "",
        "employeeId": cand.employeeId or "",
        "version": int(cand.version or 0),
        "createdAt": cand.createdAt or "",
        "updatedAt": cand.updatedAt or "",
    }


def serialize_stage_history(row: CandidateStageHistory) -> dict[str, Any]:
    return {
        "id": row.id,
        "candidateId": row.candidateId,
        "fromStage": row.fromStage or "",
        "toStage": row.toStage or "",
        "reason": row.reason or "",
        "employeeId": row.employeeId or "",
        "seq": int(row.seq or 0),
        "createdAt": row.createdAt or "",
    }


def serialize_interview(row: Interview) -> dict[str, Any]:
    return {
        "id": row.id,
        "candidateId": row.candidateId,
        "interviewerId": row.interviewerId,
        "scheduledAt": row.scheduledAt or "",
        "status": row.status or "",
        "feedback": row.feedback or "",
        "rating": row.rating,
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }


def serialize_skill(row: Skill) -> dict[str, Any]:
    return {"id": row.id, "name": row.name or "", "category": row.category or "", "createdAt": row.createdAt or ""}


def serialize_skill_assignment(row: SkillAssignment, skill: Optional[Skill] = None) -> dict[str, Any]:
    out = {
        "id": row.id,
        "employeeId": row.employeeId,
        "skillId": row.skillId,
        "level": int(row.level or 0),
        "createdAt": row.createdAt or "",
        "updatedAt": row.updatedAt or "",
    }
    if skill is not None:
        out["skill"] = serialize_skill(skill)
    return out


def serialize_certification(row: Certification) -> dict[str, Any]:
    return {
        "id": row.id,
        "employeeId": row.employeeId,
        "name": row.name or "",
        "issuer": row.issuer or "",
        "issuedAt": row.issuedAt or "",
        "expiresAt": row.expiresAt,
        "createdAt": row.createdAt or "",
    }
