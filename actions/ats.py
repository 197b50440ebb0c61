from __future__ import annotations

from typing import Any

from actions import history
from actions.helpers import append_audit, serialize_candidate, serialize_interview, serialize_job_posting
from actions.hr_repo import HrRepository
from actions.validation import (
    FieldError,
    check_department_exists,
    check_employee_reference,
    require_id,
    validate_candidate_create,
    validate_interview_create,
    validate_interview_update,
    validate_job_posting,
    validate_job_posting_update,
    validate_kpi_range,
    validate_shortlist,
)
from cache_layer import CANDIDATE_NS, cache_get_or_set, defer_invalidation, make_cache_key
from models import CANDIDATE_STAGES, TERMINAL_CANDIDATE_STAGES, Candidate, Interview, JobPosting
from utils import (
    AuthContext,
    NotFoundError,
    SYSTEM_ACTOR,
    TerminalStateError,
    ValidationError,
    iso_utc_now,
    new_uuid,
    parse_datetime_maybe,
)


def _tz(cfg) -> str:
    return str(getattr(cfg, "APP_TIMEZONE", "") or "UTC")


def _job_or_404(repo: HrRepository, job_id: Any) -> JobPosting:
    job = repo.get_job_posting(require_id(job_id, "jobId"))
    if not job:
        raise NotFoundError("Job posting not found")
    return job


# -- job postings ---------------------------------------------------------------


def job_posting_create(data, auth: AuthContext | None, db, cfg):
    inp = validate_job_posting(data).unwrap()
    repo = HrRepository(db)
    check_department_exists(repo, inp.department_id)

    now = iso_utc_now()
    job = JobPosting(
        id=new_uuid(),
        title=inp.title,
        description=inp.description,
        departmentId=inp.department_id,
        isActive=inp.is_active,
        createdAt=now,
        updatedAt=now,
    )
    db.add(job)
    repo.flush()

    append_audit(
        db,
        entityType="JOB_POSTING",
        entityId=job.id,
        action="JOB_POSTING_CREATE",
        actor=auth or SYSTEM_ACTOR,
        toState="ACTIVE" if job.isActive else "INACTIVE",
        at=now,
        after=serialize_job_posting(job),
    )
    return serialize_job_posting(job)


def job_posting_list(data, auth: AuthContext | None, db, cfg):
    raw_active = str((data or {}).get("active") or "").strip().lower()
    department_id = str((data or {}).get("departmentId") or "").strip()
    if department_id:
        department_id = require_id(department_id, "departmentId")

    rows = HrRepository(db).list_job_postings(active_only=raw_active in {"1", "true", "yes"}, department_id=department_id)
    return {"items": [serialize_job_posting(j) for j in rows], "total": len(rows)}


def job_posting_get(data, auth: AuthContext | None, db, cfg):
    job = _job_or_404(HrRepository(db), (data or {}).get("jobId"))
    return serialize_job_posting(job)


def job_posting_update(data, auth: AuthContext | None, db, cfg):
    payload = dict(data or {})
    job_id = payload.pop("jobId", "")
    inp = validate_job_posting_update(payload).unwrap()
    repo = HrRepository(db)
    job = _job_or_404(repo, job_id)
    if "departmentId" in inp.changes:
        check_department_exists(repo, inp.changes["departmentId"])

    before = serialize_job_posting(job)
    for key, value in inp.changes.items():
        setattr(job, key, value)
    job.updatedAt = iso_utc_now()
    repo.flush()

    after = serialize_job_posting(job)
    append_audit(
        db,
        entityType="JOB_POSTING",
        entityId=job.id,
        action="JOB_POSTING_UPDATE",
        actor=auth or SYSTEM_ACTOR,
        fromState="ACTIVE" if before["isActive"] else "INACTIVE",
        toState="ACTIVE" if after["isActive"] else "INACTIVE",
        at=job.updatedAt,
        before=before,
        after=after,
    )
    return after


def job_posting_archive(data, auth: AuthContext | None, db, cfg):
    """Close a posting to new applications. Candidates already in the pipeline keep moving."""

    repo = HrRepository(db)
    job = _job_or_404(repo, (data or {}).get("jobId"))
    was_active = bool(job.isActive)
    if was_active:
        job.isActive = False
        job.updatedAt = iso_utc_now()
        repo.flush()
        append_audit(
            db,
            entityType="JOB_POSTING",
            entityId=job.id,
            action="JOB_POSTING_ARCHIVE",
            actor=auth or SYSTEM_ACTOR,
            fromState="ACTIVE",
            toState="INACTIVE",
            at=job.updatedAt,
        )
    return serialize_job_posting(job)


# -- candidates -----------------------------------------------------------------


def candidate_create(data, auth: AuthContext | None, db, cfg):
    """Register an application for a job posting. New candidates always start at APPLIED."""

    payload = dict(data or {})
    job_id = payload.pop("jobId", "")
    inp = validate_candidate_create(payload).unwrap()
    repo = HrRepository(db)
    job = _job_or_404(repo, job_id)

    if not job.isActive:
        raise ValidationError(
            "Job posting is not accepting applications",
            details=[FieldError("jobId", "job posting is inactive").to_dict()],
        )
    if repo.find_candidate_by_email(job.id, inp.email):
        raise ValidationError(
            "Candidate already applied for this job",
            details=[FieldError("email", "an application with this email already exists for the job").to_dict()],
        )

    now = iso_utc_now()
    cand = Candidate(
        id=new_uuid(),
        jobPostingId=job.id,
        firstName=inp.first_name,
        lastName=inp.last_name,
        email=inp.email,
        phone=inp.phone,
        resumeUrl=inp.resume_url,
        stage="APPLIED",
        createdAt=now,
        updatedAt=now,
    )
    repo.save_candidate(cand)

    history.record(
        db,
        history.CANDIDATE,
        cand.id,
        "APPLIED",
        {"fromStage": "", "toStage": "APPLIED", "reason": "Application received"},
        actor=auth,
        repo=repo,
    )
    return serialize_candidate(cand)


def job_candidates_list(data, auth: AuthContext | None, db, cfg):
    repo = HrRepository(db)
    job = _job_or_404(repo, (data or {}).get("jobId"))

    stage = str((data or {}).get("stage") or "").strip().upper()
    if stage and stage not in CANDIDATE_STAGES:
        raise ValidationError(details=[FieldError("stage", f"must be one of {', '.join(CANDIDATE_STAGES)}").to_dict()])

    rows = repo.list_candidates(job.id, stage=stage)
    return {"jobId": job.id, "items": [serialize_candidate(c) for c in rows], "total": len(rows)}


def candidate_get(data, auth: AuthContext | None, db, cfg):
    cid = require_id((data or {}).get("candidateId"), "candidateId")

    repo = HrRepository(db)
    version = repo.current_version(Candidate, cid)
    if version is None:
        raise NotFoundError("Candidate not found")

    def _load():
        cand = repo.get_candidate(cid)
        return serialize_candidate(cand) if cand else None

    out = cache_get_or_set(make_cache_key(CANDIDATE_NS, cid, "view"), _load, version=version)
    if out is None:
        raise NotFoundError("Candidate not found")
    return out


def candidate_shortlist(data, auth: AuthContext | None, db, cfg):
    """Read-only filter: candidates of a job whose score is at least `minScore`."""

    payload = dict(data or {})
    job_id = payload.pop("jobId", "")
    inp = validate_shortlist(payload).unwrap()
    repo = HrRepository(db)
    job = _job_or_404(repo, job_id)

    everyone = repo.list_candidates(job.id)
    shortlisted = [c for c in everyone if (c.score or 0) >= inp.min_score]
    return {
        "jobId": job.id,
        "minScore": inp.min_score,
        "total": len(everyone),
        "shortlisted": len(shortlisted),
        "candidates": [serialize_candidate(c) for c in shortlisted],
    }


# -- interviews -----------------------------------------------------------------


def interview_schedule(data, auth: AuthContext | None, db, cfg):
    inp = validate_interview_create(data, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)

    cand = repo.get_candidate(inp.candidate_id)
    if not cand:
        raise NotFoundError("Candidate not found")
    stage = str(cand.stage or "").upper()
    if stage in TERMINAL_CANDIDATE_STAGES:
        raise TerminalStateError(f"Candidate is {stage}; interviews cannot be scheduled", state=stage)
    check_employee_reference(repo, inp.interviewer_id, field="interviewerId")

    now = iso_utc_now()
    row = Interview(
        id=new_uuid(),
        candidateId=cand.id,
        interviewerId=inp.interviewer_id,
        scheduledAt=inp.scheduled_at,
        status="SCHEDULED",
        createdAt=now,
        updatedAt=now,
    )
    db.add(row)
    repo.flush()

    append_audit(
        db,
        entityType="CANDIDATE",
        entityId=cand.id,
        action="INTERVIEW_SCHEDULE",
        actor=auth or SYSTEM_ACTOR,
        fromState=stage,
        toState=stage,
        stageTag="INTERVIEW",
        at=now,
        meta={"interviewId": row.id, "scheduledAt": row.scheduledAt},
    )
    defer_invalidation(db, CANDIDATE_NS, cand.id)
    return serialize_interview(row)


def interview_update(data, auth: AuthContext | None, db, cfg):
    payload = dict(data or {})
    interview_id = require_id(payload.pop("interviewId", ""), "interviewId")
    inp = validate_interview_update(payload, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)

    row = repo.get_interview(interview_id, lock=True)
    if not row:
        raise NotFoundError("Interview not found")

    before = serialize_interview(row)
    if inp.scheduled_at is not None:
        row.scheduledAt = inp.scheduled_at
    if inp.status is not None:
        row.status = inp.status
    if inp.feedback is not None:
        row.feedback = inp.feedback
    if inp.rating is not None:
        row.rating = inp.rating
    row.updatedAt = iso_utc_now()
    repo.flush()

    after = serialize_interview(row)
    append_audit(
        db,
        entityType="INTERVIEW",
        entityId=row.id,
        action="INTERVIEW_UPDATE",
        actor=auth or SYSTEM_ACTOR,
        fromState=before["status"],
        toState=after["status"],
        stageTag="INTERVIEW",
        at=row.updatedAt,
        before=before,
        after=after,
    )
    return after


def candidate_interviews_list(data, auth: AuthContext | None, db, cfg):
    cid = require_id((data or {}).get("candidateId"), "candidateId")
    repo = HrRepository(db)
    if not repo.get_candidate(cid):
        raise NotFoundError("Candidate not found")
    return {"candidateId": cid, "items": [serialize_interview(i) for i in repo.list_interviews(cid)]}


# -- KPIs -----------------------------------------------------------------------


def _days_between(start: str, end: str) -> float | None:
    a = parse_datetime_maybe(start)
    b = parse_datetime_maybe(end)
    if a is None or b is None:
        return None
    return max(0.0, (b - a).total_seconds() / 86400)


def recruitment_kpis(data, auth: AuthContext | None, db, cfg):
    """
    Recruitment totals for postings and candidates created in [from, to].

    timeToHireDays averages the time from application to the HIRED stage change.
    """

    inp = validate_kpi_range(data, app_timezone=_tz(cfg)).unwrap()
    repo = HrRepository(db)

    jobs = repo.count_job_postings(date_from=inp.date_from, date_to=inp.date_to)
    stages = repo.candidate_stage_counts(date_from=inp.date_from, date_to=inp.date_to)
    candidates = sum(stages.values())
    hired = stages.get("HIRED", 0)

    durations = [
        d
        for d in (_days_between(applied, at) for applied, at in repo.hire_timestamps(date_from=inp.date_from, date_to=inp.date_to))
        if d is not None
    ]
    time_to_hire = round(sum(durations) / len(durations), 2) if durations else 0.0

    return {
        "range": {"from": inp.date_from, "to": inp.date_to},
        "totals": {"jobs": jobs, "candidates": candidates, "hired": hired},
        "metrics": {
            "timeToHireDays": time_to_hire,
            "hireRate": round(hired / candidates * 100, 2) if candidates else 0.0,
            "byStage": {stage: stages.get(stage, 0) for stage in CANDIDATE_STAGES},
        },
    }
