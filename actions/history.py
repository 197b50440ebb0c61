"""
Append-only history recorder.

`record()` is the single write path for CareerProgression, Evaluation and
CandidateStageHistory rows. Each call also appends an AuditLog row in the same session,
so history and audit are committed (or rolled back) with the entity change.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from actions.helpers import append_audit
from actions.hr_repo import HrRepository
from models import PROGRESSION_TYPES, CandidateStageHistory, CareerProgression, Evaluation
from utils import AuthContext, SYSTEM_ACTOR, iso_utc_now, new_uuid


_log = logging.getLogger("history")

EMPLOYEE = "EMPLOYEE"
EVALUATION = "EVALUATION"
CANDIDATE = "CANDIDATE"


def _progression(entity_id: str, type_: str, payload: dict[str, Any], now: str) -> CareerProgression:
    if type_ not in PROGRESSION_TYPES:
        raise ValueError(f"Unknown career progression type: {type_}")
    return CareerProgression(
        id=new_uuid(),
        employeeId=entity_id,
        type=type_,
        effectiveDate=payload.get("effectiveDate") or now,
        previousStatus=payload.get("previousStatus") or "",
        newStatus=payload.get("newStatus") or "",
        previousJobTitle=payload.get("previousJobTitle"),
        newJobTitle=payload.get("newJobTitle"),
        previousSalary=payload.get("previousSalary"),
        newSalary=payload.get("newSalary"),
        previousDepartmentId=payload.get("previousDepartmentId"),
        newDepartmentId=payload.get("newDepartmentId"),
        previousManagerId=payload.get("previousManagerId"),
        newManagerId=payload.get("newManagerId"),
        reason=payload.get("reason") or "",
        approvedById=payload.get("approvedById"),
        evaluationId=payload.get("evaluationId"),
        createdAt=now,
    )


def _evaluation(entity_id: str, type_: str, payload: dict[str, Any], now: str) -> Evaluation:
    return Evaluation(
        id=new_uuid(),
        employeeId=entity_id,
        evaluatorId=payload.get("evaluatorId"),
        date=payload.get("date") or now,
        score=int(payload["score"]),
        feedback=payload.get("feedback") or "",
        probation=bool(payload.get("probation", type_ == "PROBATION")),
        createdAt=now,
    )


def _stage_change(entity_id: str, type_: str, payload: dict[str, Any], now: str) -> CandidateStageHistory:
    return CandidateStageHistory(
        id=new_uuid(),
        candidateId=entity_id,
        fromStage=payload.get("fromStage") or "",
        toStage=payload.get("toStage") or "",
        reason=payload.get("reason") or "",
        employeeId=payload.get("employeeId") or "",
        createdAt=now,
    )


_BUILDERS = {
    EMPLOYEE: _progression,
    EVALUATION: _evaluation,
    CANDIDATE: _stage_change,
}


def _audit_states(entity_type: str, payload: dict[str, Any]) -> tuple[str, str]:
    if entity_type == CANDIDATE:
        return payload.get("fromStage") or "", payload.get("toStage") or ""
    return payload.get("previousStatus") or "", payload.get("newStatus") or ""


def record(
    db,
    entity_type: str,
    entity_id: str,
    type: str,
    payload: Optional[dict[str, Any]] = None,
    *,
    actor: Optional[AuthContext] = None,
    repo: Optional[HrRepository] = None,
):
    """
    Append one history row of `entity_type` for `entity_id` and return it.

    `type` is the progression type for EMPLOYEE rows, the evaluation kind
    ("PROBATION" / "PROBATION_CLOSE" / "REVIEW") for EVALUATION rows and the transition tag
    for CANDIDATE rows. An explicit `probation` flag in the payload wins over the kind.
    """

    et = str(entity_type or "").upper()
    builder = _BUILDERS.get(et)
    if builder is None:
        raise ValueError(f"Unsupported history entity type: {entity_type}")

    payload = dict(payload or {})
    repo = repo or HrRepository(db)
    now = iso_utc_now()

    row = builder(entity_id, str(type or "").upper(), payload, now)
    if et != EVALUATION:
        row.seq = repo.next_seq(row.__class__, entity_id)
    repo.insert_history(row)

    from_state, to_state = _audit_states(et, payload)
    append_audit(
        db,
        entityType=et,
        entityId=entity_id,
        action=str(type or "").upper(),
        actor=actor or SYSTEM_ACTOR,
        fromState=from_state,
        toState=to_state,
        stageTag=f"HISTORY_{et}",
        remark=payload.get("reason") or payload.get("feedback") or "",
        at=now,
        meta={"historyId": row.id},
    )
    _log.info("history entity=%s id=%s type=%s row=%s", et, entity_id, type, row.id)
    return row
