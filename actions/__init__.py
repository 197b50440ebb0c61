from __future__ import annotations

from typing import Any, Callable

from actions.ats import (
    candidate_create,
    candidate_get,
    candidate_interviews_list,
    candidate_shortlist,
    interview_schedule,
    interview_update,
    job_candidates_list,
    job_posting_archive,
    job_posting_create,
    job_posting_get,
    job_posting_list,
    job_posting_update,
    recruitment_kpis,
)
from actions.directory import directory_search, org_chart_get
from actions.employee_profile import (
    department_create,
    department_list,
    employee_career_history,
    employee_create,
    employee_evaluation_add,
    employee_evaluations_list,
    employee_get,
    employee_list,
    employee_update,
)
from actions.lifecycle_service import (
    employee_offboard,
    employee_probation_end,
    employee_probation_start,
    employee_promote,
    employee_transfer,
)
from actions.pipeline import candidate_hire, candidate_score_set, candidate_stage_update, candidate_stages_get
from actions.skills import (
    employee_certification_add,
    employee_certification_remove,
    employee_certifications_list,
    employee_skill_add,
    employee_skill_remove,
    employee_skill_update,
    employee_skills_list,
    skill_create,
    skill_list,
)
from utils import ApiError, AuthContext


Action = Callable[[Any, "AuthContext | None", Any, Any], Any]

ACTIONS: dict[str, Action] = {
    # employee lifecycle
    "EMPLOYEE_PROMOTE": employee_promote,
    "EMPLOYEE_TRANSFER": employee_transfer,
    "EMPLOYEE_PROBATION_START": employee_probation_start,
    "EMPLOYEE_PROBATION_END": employee_probation_end,
    "EMPLOYEE_OFFBOARD": employee_offboard,
    # candidate pipeline
    "CANDIDATE_STAGE_UPDATE": candidate_stage_update,
    "CANDIDATE_SCORE_SET": candidate_score_set,
    "CANDIDATE_HIRE": candidate_hire,
    "CANDIDATE_STAGES_GET": candidate_stages_get,
    # records
    "DEPARTMENT_CREATE": department_create,
    "DEPARTMENT_LIST": department_list,
    "EMPLOYEE_CREATE": employee_create,
    "EMPLOYEE_GET": employee_get,
    "EMPLOYEE_LIST": employee_list,
    "EMPLOYEE_UPDATE": employee_update,
    "EMPLOYEE_CAREER_HISTORY": employee_career_history,
    "EMPLOYEE_EVALUATIONS_LIST": employee_evaluations_list,
    "EMPLOYEE_EVALUATION_ADD": employee_evaluation_add,
    # directory / skills
    "DIRECTORY_SEARCH": directory_search,
    "ORG_CHART_GET": org_chart_get,
    "SKILL_LIST": skill_list,
    "SKILL_CREATE": skill_create,
    "EMPLOYEE_SKILLS_LIST": employee_skills_list,
    "EMPLOYEE_SKILL_ADD": employee_skill_add,
    "EMPLOYEE_SKILL_UPDATE": employee_skill_update,
    "EMPLOYEE_SKILL_REMOVE": employee_skill_remove,
    "EMPLOYEE_CERTIFICATIONS_LIST": employee_certifications_list,
    "EMPLOYEE_CERTIFICATION_ADD": employee_certification_add,
    "EMPLOYEE_CERTIFICATION_REMOVE": employee_certification_remove,
    # recruitment
    "JOB_POSTING_CREATE": job_posting_create,
    "JOB_POSTING_LIST": job_posting_list,
    "JOB_POSTING_GET": job_posting_get,
    "JOB_POSTING_UPDATE": job_posting_update,
    "JOB_POSTING_ARCHIVE": job_posting_archive,
    "RECRUITMENT_KPIS": recruitment_kpis,
    "JOB_CANDIDATES_LIST": job_candidates_list,
    "CANDIDATE_CREATE": candidate_create,
    "CANDIDATE_GET": candidate_get,
    "CANDIDATE_SHORTLIST": candidate_shortlist,
    "INTERVIEW_SCHEDULE": interview_schedule,
    "INTERVIEW_UPDATE": interview_update,
    "CANDIDATE_INTERVIEWS_LIST": candidate_interviews_list,
}

READ_ACTIONS = frozenset(
    {
        "CANDIDATE_STAGES_GET",
        "DEPARTMENT_LIST",
        "EMPLOYEE_GET",
        "EMPLOYEE_LIST",
        "EMPLOYEE_CAREER_HISTORY",
        "EMPLOYEE_EVALUATIONS_LIST",
        "DIRECTORY_SEARCH",
        "ORG_CHART_GET",
        "SKILL_LIST",
        "EMPLOYEE_SKILLS_LIST",
        "EMPLOYEE_CERTIFICATIONS_LIST",
        "JOB_POSTING_LIST",
        "JOB_POSTING_GET",
        "RECRUITMENT_KPIS",
        "JOB_CANDIDATES_LIST",
        "CANDIDATE_GET",
        "CANDIDATE_SHORTLIST",
        "CANDIDATE_INTERVIEWS_LIST",
    }
)


def dispatch(action: str, data: Any, auth: AuthContext | None, db, cfg) -> Any:
    action_u = str(action or "").upper().strip()
    fn = ACTIONS.get(action_u)
    if fn is None:
        raise ApiError("UNKNOWN_ACTION", f"Unknown action: {action_u}", http_status=400)
    return fn(data or {}, auth, db, cfg)
