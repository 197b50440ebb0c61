from __future__ import annotations

from flask import Blueprint, request

from app.api import json_body, rest_handle

recruitment_bp = Blueprint("recruitment", __name__)


def _with(body: dict, **ids) -> dict:
    out = dict(body)
    out.update(ids)
    return out


@recruitment_bp.get("/jobs")
def jobs_list():
    return rest_handle("JOB_POSTING_LIST", request.args.to_dict())


@recruitment_bp.post("/jobs")
def jobs_create():
    return rest_handle("JOB_POSTING_CREATE", json_body(), http_status=201)


@recruitment_bp.get("/jobs/<job_id>")
def job_get(job_id: str):
    return rest_handle("JOB_POSTING_GET", {"jobId": job_id})


@recruitment_bp.put("/jobs/<job_id>")
def job_update(job_id: str):
    return rest_handle("JOB_POSTING_UPDATE", _with(json_body(), jobId=job_id))


@recruitment_bp.delete("/jobs/<job_id>")
def job_archive(job_id: str):
    return rest_handle("JOB_POSTING_ARCHIVE", {"jobId": job_id})


@recruitment_bp.get("/jobs/<job_id>/candidates")
def job_candidates_list(job_id: str):
    return rest_handle("JOB_CANDIDATES_LIST", _with(request.args.to_dict(), jobId=job_id))


@recruitment_bp.post("/jobs/<job_id>/candidates")
def job_candidate_create(job_id: str):
    return rest_handle("CANDIDATE_CREATE", _with(json_body(), jobId=job_id), http_status=201)


@recruitment_bp.post("/jobs/<job_id>/shortlist")
def job_shortlist(job_id: str):
    return rest_handle("CANDIDATE_SHORTLIST", _with(json_body(), jobId=job_id))


# -- candidate pipeline ---------------------------------------------------------


@recruitment_bp.get("/candidates/<candidate_id>")
def candidate_get(candidate_id: str):
    return rest_handle("CANDIDATE_GET", {"candidateId": candidate_id})


@recruitment_bp.get("/candidates/<candidate_id>/stages")
def candidate_stages(candidate_id: str):
    return rest_handle("CANDIDATE_STAGES_GET", {"candidateId": candidate_id})


@recruitment_bp.patch("/candidates/<candidate_id>/stage")
def candidate_stage_update(candidate_id: str):
    return rest_handle("CANDIDATE_STAGE_UPDATE", _with(json_body(), candidateId=candidate_id))


@recruitment_bp.patch("/candidates/<candidate_id>/score")
def candidate_score_set(candidate_id: str):
    return rest_handle("CANDIDATE_SCORE_SET", _with(json_body(), candidateId=candidate_id))


@recruitment_bp.post("/candidates/<candidate_id>/hire")
def candidate_hire(candidate_id: str):
    return rest_handle("CANDIDATE_HIRE", _with(json_body(), candidateId=candidate_id))


# -- interviews -----------------------------------------------------------------


@recruitment_bp.post("/interviews")
def interview_schedule():
    return rest_handle("INTERVIEW_SCHEDULE", json_body(), http_status=201)


@recruitment_bp.patch("/interviews/<interview_id>")
def interview_update(interview_id: str):
    return rest_handle("INTERVIEW_UPDATE", _with(json_body(), interviewId=interview_id))


@recruitment_bp.get("/candidates/<candidate_id>/interviews")
def candidate_interviews(candidate_id: str):
    return rest_handle("CANDIDATE_INTERVIEWS_LIST", {"candidateId": candidate_id})


# -- KPIs -----------------------------------------------------------------------


@recruitment_bp.get("/recruitment/kpis")
def recruitment_kpis():
    return rest_handle("RECRUITMENT_KPIS", request.args.to_dict())
