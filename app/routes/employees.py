from __future__ import annotations

from flask import Blueprint, request

from app.api import json_body, rest_handle

employees_bp = Blueprint("employees", __name__)


def _with(body: dict, **ids) -> dict:
    out = dict(body)
    out.update(ids)
    return out


# -- departments ----------------------------------------------------------------


@employees_bp.get("/departments")
def departments_list():
    return rest_handle("DEPARTMENT_LIST", {})


@employees_bp.post("/departments")
def departments_create():
    return rest_handle("DEPARTMENT_CREATE", json_body(), http_status=201)


# -- employee records -----------------------------------------------------------


@employees_bp.get("/employees")
def employees_list():
    return rest_handle("EMPLOYEE_LIST", request.args.to_dict())


@employees_bp.post("/employees")
def employees_create():
    return rest_handle("EMPLOYEE_CREATE", json_body(), http_status=201)


@employees_bp.get("/employees/<employee_id>")
def employee_get(employee_id: str):
    return rest_handle("EMPLOYEE_GET", {"employeeId": employee_id})


@employees_bp.patch("/employees/<employee_id>")
def employee_update(employee_id: str):
    return rest_handle("EMPLOYEE_UPDATE", _with(json_body(), employeeId=employee_id))


@employees_bp.get("/employees/<employee_id>/career-history")
def employee_career_history(employee_id: str):
    return rest_handle("EMPLOYEE_CAREER_HISTORY", {"employeeId": employee_id})


@employees_bp.get("/employees/<employee_id>/evaluations")
def employee_evaluations_list(employee_id: str):
    return rest_handle("EMPLOYEE_EVALUATIONS_LIST", {"employeeId": employee_id})


@employees_bp.post("/employees/<employee_id>/evaluations")
def employee_evaluation_add(employee_id: str):
    return rest_handle("EMPLOYEE_EVALUATION_ADD", _with(json_body(), employeeId=employee_id), http_status=201)


# -- directory / org chart ------------------------------------------------------


@employees_bp.get("/employees/directory/search")
def directory_search():
    return rest_handle("DIRECTORY_SEARCH", request.args.to_dict())


@employees_bp.get("/employees/org-chart")
def org_chart():
    return rest_handle("ORG_CHART_GET", request.args.to_dict())


# -- skills / certifications ----------------------------------------------------


@employees_bp.get("/skills")
def skills_list():
    return rest_handle("SKILL_LIST", {})


@employees_bp.post("/skills")
def skills_create():
    return rest_handle("SKILL_CREATE", json_body(), http_status=201)


@employees_bp.get("/employees/<employee_id>/skills")
def employee_skills_list(employee_id: str):
    return rest_handle("EMPLOYEE_SKILLS_LIST", {"employeeId": employee_id})


@employees_bp.post("/employees/<employee_id>/skills")
def employee_skill_add(employee_id: str):
    return rest_handle("EMPLOYEE_SKILL_ADD", _with(json_body(), employeeId=employee_id), http_status=201)


@employees_bp.put("/employees/<employee_id>/skills/<assignment_id>")
def employee_skill_update(employee_id: str, assignment_id: str):
    return rest_handle("EMPLOYEE_SKILL_UPDATE", _with(json_body(), employeeId=employee_id, assignmentId=assignment_id))


@employees_bp.delete("/employees/<employee_id>/skills/<assignment_id>")
def employee_skill_remove(employee_id: str, assignment_id: str):
    return rest_handle("EMPLOYEE_SKILL_REMOVE", {"employeeId": employee_id, "assignmentId": assignment_id})


@employees_bp.get("/employees/<employee_id>/certifications")
def employee_certifications_list(employee_id: str):
    return rest_handle("EMPLOYEE_CERTIFICATIONS_LIST", {"employeeId": employee_id})


@employees_bp.post("/employees/<employee_id>/certifications")
def employee_certification_add(employee_id: str):
    return rest_handle("EMPLOYEE_CERTIFICATION_ADD", _with(json_body(), employeeId=employee_id), http_status=201)


@employees_bp.delete("/employees/<employee_id>/certifications/<certification_id>")
def employee_certification_remove(employee_id: str, certification_id: str):
    return rest_handle("EMPLOYEE_CERTIFICATION_REMOVE", {"employeeId": employee_id, "certificationId": certification_id})


# -- lifecycle ------------------------------------------------------------------


@employees_bp.post("/employees/<employee_id>/promote")
def employee_promote(employee_id: str):
    return rest_handle("EMPLOYEE_PROMOTE", _with(json_body(), employeeId=employee_id))


@employees_bp.post("/employees/<employee_id>/transfer")
def employee_transfer(employee_id: str):
    return rest_handle("EMPLOYEE_TRANSFER", _with(json_body(), employeeId=employee_id))


@employees_bp.post("/employees/<employee_id>/probation/start")
def employee_probation_start(employee_id: str):
    return rest_handle("EMPLOYEE_PROBATION_START", _with(json_body(), employeeId=employee_id))


@employees_bp.post("/employees/<employee_id>/probation/end")
def employee_probation_end(employee_id: str):
    return rest_handle("EMPLOYEE_PROBATION_END", _with(json_body(), employeeId=employee_id))


@employees_bp.post("/employees/<employee_id>/offboard")
def employee_offboard(employee_id: str):
    return rest_handle("EMPLOYEE_OFFBOARD", _with(json_body(), employeeId=employee_id))
