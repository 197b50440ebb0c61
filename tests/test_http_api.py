from __future__ import annotations

import json

from sqlalchemy import func, select, update
from sqlalchemy.orm.exc import StaleDataError

from db import SessionLocal
from models import AuditLog, CareerProgression, Employee, Evaluation
from utils import new_uuid

HEADERS = {"X-Actor-Id": "hr-admin-1", "X-Actor-Role": "HR"}


def _post(client, path: str, payload: dict | None = None):
    return client.post(path, data=json.dumps(payload or {}), content_type="application/json", headers=HEADERS)


def _patch(client, path: str, payload: dict):
    return client.patch(path, data=json.dumps(payload), content_type="application/json", headers=HEADERS)


def _put(client, path: str, payload: dict):
    return client.put(path, data=json.dumps(payload), content_type="application/json", headers=HEADERS)


def _ok(res, status: int = 200) -> dict:
    assert res.status_code == status, res.get_data(as_text=True)
    body = res.get_json()
    assert body["ok"] is True
    return body["data"]


def _error(res, status: int, code: str) -> dict:
    assert res.status_code == status, res.get_data(as_text=True)
    body = res.get_json()
    assert body["ok"] is False
    assert body["error"]["code"] == code
    return body["error"]


def _create_department(client, name: str = "Engineering") -> str:
    return _ok(_post(client, "/api/departments", {"name": name, "description": "Builds things"}), 201)["id"]


def _create_employee(client, department_id: str, **extra) -> dict:
    payload = {
        "firstName": "Robin",
        "lastName": "Hart",
        "email": extra.pop("email", f"robin.{new_uuid()[:6]}@example.com"),
        "jobType": "FULL_TIME",
        "jobTitle": "Engineer",
        "departmentId": department_id,
        "salary": 50000,
    }
    payload.update(extra)
    return _ok(_post(client, "/api/employees", payload), 201)


def test_employee_lifecycle_over_http(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)
    assert emp["status"] == "ACTIVE"

    promoted = _ok(_post(client, f"/api/employees/{emp['id']}/promote", {"jobTitle": "Senior Engineer", "salary": 60000}))
    assert promoted["employee"]["jobTitle"] == "Senior Engineer"
    assert promoted["history"]["type"] == "PROMOTION"
    assert promoted["history"]["newSalary"] == 60000.0

    started = _ok(_post(client, f"/api/employees/{emp['id']}/probation/start", {"score": 7, "feedback": "Needs mentoring"}))
    assert started["employee"]["status"] == "PROBATION"
    assert started["evaluation"]["score"] == 7

    ended = _ok(_post(client, f"/api/employees/{emp['id']}/probation/end", {}))
    assert ended["employee"]["status"] == "ACTIVE"

    off = _ok(_post(client, f"/api/employees/{emp['id']}/offboard", {"reason": "Resigned for studies"}))
    assert off["employee"]["status"] == "TERMINATED"

    again = _error(_post(client, f"/api/employees/{emp['id']}/offboard", {}), 409, "TERMINAL_STATE")
    assert again["details"]["state"] == "TERMINATED"

    hist = _ok(client.get(f"/api/employees/{emp['id']}/career-history"))
    assert [h["type"] for h in hist["items"]] == ["PROMOTION", "PROBATION_START", "PROBATION_END", "OFFBOARD"]
    assert hist["status"] == "TERMINATED"


def test_lifecycle_error_codes(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    _error(_post(client, f"/api/employees/{new_uuid()}/promote", {"jobTitle": "X"}), 404, "NOT_FOUND")
    _error(_post(client, "/api/employees/E1/promote", {"jobTitle": "X"}), 400, "VALIDATION_ERROR")
    _error(_post(client, f"/api/employees/{emp['id']}/probation/end", {}), 409, "INVALID_TRANSITION")

    err = _error(_post(client, f"/api/employees/{emp['id']}/transfer", {"departmentId": "D1"}), 400, "VALIDATION_ERROR")
    assert err["details"][0]["field"] == "departmentId"


def test_transfer_to_missing_department_writes_nothing(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    _error(_post(client, f"/api/employees/{emp['id']}/transfer", {"departmentId": new_uuid()}), 400, "VALIDATION_ERROR")

    with SessionLocal() as db:
        assert db.get(Employee, emp["id"]).departmentId == dept
        n = db.execute(select(func.count()).select_from(CareerProgression)).scalar_one()
        assert n == 0


def test_failed_history_write_rolls_back_entity_change(app_client, monkeypatch):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    def _boom(*_args, **_kwargs):
        raise RuntimeError("history store unavailable")

    monkeypatch.setattr("actions.history.record", _boom)
    _error(_post(client, f"/api/employees/{emp['id']}/probation/start", {"score": 7}), 500, "INTERNAL")

    with SessionLocal() as db:
        assert db.get(Employee, emp["id"]).status == "ACTIVE"
        assert db.execute(select(func.count()).select_from(CareerProgression)).scalar_one() == 0
        assert db.execute(select(func.count()).select_from(Evaluation)).scalar_one() == 0
        errors = list(db.execute(select(AuditLog).where(AuditLog.stageTag == "API_ERROR")).scalars())
        assert [e.action for e in errors] == ["EMPLOYEE_PROBATION_START"]


def test_generic_update_cannot_change_status(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    err = _error(_patch(client, f"/api/employees/{emp['id']}", {"status": "TERMINATED"}), 400, "VALIDATION_ERROR")
    assert err["details"][0]["field"] == "status"

    updated = _ok(_patch(client, f"/api/employees/{emp['id']}", {"phone": "+1 555 0100"}))
    assert updated["phone"] == "+1 555 0100"
    assert updated["status"] == "ACTIVE"


def test_employee_view_cache_is_invalidated_by_lifecycle_changes(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    before = _ok(client.get(f"/api/employees/{emp['id']}"))
    assert before["jobTitle"] == "Engineer"

    _ok(_post(client, f"/api/employees/{emp['id']}/promote", {"jobTitle": "Tech Lead"}))
    after = _ok(client.get(f"/api/employees/{emp['id']}"))
    assert after["jobTitle"] == "Tech Lead"
    assert after["version"] == before["version"] + 1


def test_employee_view_is_reloaded_when_another_process_changed_the_row(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    first = _ok(client.get(f"/api/employees/{emp['id']}"))
    assert first["jobTitle"] == "Engineer"

    # committed elsewhere, so this process never saw an invalidation
    with SessionLocal() as other:
        other.execute(
            update(Employee).where(Employee.id == emp["id"]).values(jobTitle="Principal Engineer", version=Employee.version + 1)
        )
        other.commit()

    fresh = _ok(client.get(f"/api/employees/{emp['id']}"))
    assert fresh["jobTitle"] == "Principal Engineer"
    assert fresh["version"] == first["version"] + 1


def test_employee_list_filters(app_client):
    _app, client = app_client
    eng = _create_department(client, "Engineering")
    ops = _create_department(client, "Operations")
    _create_employee(client, eng)
    _create_employee(client, ops)

    listed = _ok(client.get(f"/api/employees?departmentId={ops}"))
    assert listed["total"] == 1
    assert listed["items"][0]["departmentId"] == ops

    _error(client.get("/api/employees?status=RETIRED"), 400, "VALIDATION_ERROR")


def test_evaluations_endpoint(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    created = _ok(_post(client, f"/api/employees/{emp['id']}/evaluations", {"score": 9, "feedback": "Great quarter"}), 201)
    assert created["probation"] is False

    items = _ok(client.get(f"/api/employees/{emp['id']}/evaluations"))["items"]
    assert [e["score"] for e in items] == [9]


def test_recruitment_flow_over_http(app_client):
    _app, client = app_client
    dept = _create_department(client)
    job = _ok(
        _post(client, "/api/jobs", {"title": "Platform Engineer", "description": "Own the platform.", "departmentId": dept}),
        201,
    )

    cand = _ok(
        _post(
            client,
            f"/api/jobs/{job['id']}/candidates",
            {"firstName": "Sam", "lastName": "Lee", "email": "sam@example.com"},
        ),
        201,
    )
    assert cand["stage"] == "APPLIED"

    _error(
        _post(client, f"/api/jobs/{job['id']}/candidates", {"firstName": "Sam", "lastName": "Lee", "email": "SAM@example.com"}),
        400,
        "VALIDATION_ERROR",
    )

    _error(_patch(client, f"/api/candidates/{cand['id']}/stage", {"stage": "OFFER"}), 409, "INVALID_TRANSITION")

    for stage in ("SCREENING", "INTERVIEW", "OFFER"):
        moved = _ok(_patch(client, f"/api/candidates/{cand['id']}/stage", {"stage": stage}))
        assert moved["candidate"]["stage"] == stage

    scored = _ok(_patch(client, f"/api/candidates/{cand['id']}/score", {"score": 91}))
    assert scored["candidate"]["score"] == 91
    assert scored["candidate"]["stage"] == "OFFER"

    hired = _ok(_post(client, f"/api/candidates/{cand['id']}/hire", {"jobTitle": "Engineer", "departmentId": dept}))
    assert hired["candidate"]["stage"] == "HIRED"
    assert hired["employee"]["status"] == "ACTIVE"
    assert hired["employee"]["jobTitle"] == "Engineer"
    assert hired["employee"]["departmentId"] == dept
    assert hired["candidate"]["employeeId"] == hired["employee"]["id"]

    _error(_post(client, f"/api/candidates/{cand['id']}/hire", {}), 409, "TERMINAL_STATE")
    _error(_patch(client, f"/api/candidates/{cand['id']}/score", {"score": 10}), 409, "TERMINAL_STATE")

    stages = _ok(client.get(f"/api/candidates/{cand['id']}/stages"))
    assert stages["stage"] == "HIRED"
    assert stages["nextStages"] == []
    assert [h["toStage"] for h in stages["history"]] == ["APPLIED", "SCREENING", "INTERVIEW", "OFFER", "HIRED"]

    view = _ok(client.get(f"/api/candidates/{cand['id']}"))
    assert view["stage"] == "HIRED"

    with SessionLocal() as db:
        assert db.execute(select(func.count()).select_from(Employee).where(Employee.candidateId == cand["id"])).scalar_one() == 1


def test_shortlist_and_interviews(app_client):
    _app, client = app_client
    dept = _create_department(client)
    interviewer = _create_employee(client, dept)
    job = _ok(_post(client, "/api/jobs", {"title": "QA Engineer", "description": "Quality matters.", "departmentId": dept}), 201)

    ids = []
    for i, score in enumerate((40, 75, 90)):
        cand = _ok(
            _post(
                client,
                f"/api/jobs/{job['id']}/candidates",
                {"firstName": "Cand", "lastName": f"Number{i}", "email": f"c{i}@example.com"},
            ),
            201,
        )
        _ok(_patch(client, f"/api/candidates/{cand['id']}/score", {"score": score}))
        ids.append(cand["id"])

    short = _ok(_post(client, f"/api/jobs/{job['id']}/shortlist", {"minScore": 70}))
    assert short["total"] == 3
    assert short["shortlisted"] == 2
    assert {c["id"] for c in short["candidates"]} == set(ids[1:])

    interview = _ok(
        _post(
            client,
            "/api/interviews",
            {"candidateId": ids[2], "interviewerId": interviewer["id"], "scheduledAt": "2025-01-15T10:00:00Z"},
        ),
        201,
    )
    assert interview["status"] == "SCHEDULED"

    done = _ok(_patch(client, f"/api/interviews/{interview['id']}", {"status": "COMPLETED", "rating": 8, "feedback": "Good"}))
    assert done["status"] == "COMPLETED"
    assert done["rating"] == 8

    listed = _ok(client.get(f"/api/candidates/{ids[2]}/interviews"))["items"]
    assert [i["id"] for i in listed] == [interview["id"]]


def test_envelope_for_unknown_routes_and_request_id(app_client):
    _app, client = app_client

    res = client.get("/api/nope", headers={"X-Request-ID": "req-12345678"})
    _error(res, 404, "NOT_FOUND")
    assert res.headers["X-Request-ID"] == "req-12345678"

    res = client.delete("/api/departments")
    _error(res, 405, "METHOD_NOT_ALLOWED")


def test_malformed_json_body(app_client):
    _app, client = app_client
    res = client.post("/api/departments", data="{not json", content_type="application/json", headers=HEADERS)
    _error(res, 400, "BAD_REQUEST")


def test_api_calls_are_audited_with_actor(app_client):
    _app, client = app_client
    dept = _create_department(client)

    with SessionLocal() as db:
        calls = list(db.execute(select(AuditLog).where(AuditLog.stageTag == "API_CALL")).scalars())
        assert [c.action for c in calls] == ["DEPARTMENT_CREATE"]
        assert calls[0].actorUserId == "hr-admin-1"
        created = list(db.execute(select(AuditLog).where(AuditLog.entityId == dept)).scalars())
        assert created and created[0].action == "DEPARTMENT_CREATE"


def test_stage_update_to_hired_converts_candidate(app_client):
    _app, client = app_client
    dept = _create_department(client)
    job = _ok(_post(client, "/api/jobs", {"title": "SRE", "description": "Keep it up.", "departmentId": dept}), 201)
    cand = _ok(
        _post(client, f"/api/jobs/{job['id']}/candidates", {"firstName": "Ari", "lastName": "Moss", "email": "ari@example.com"}),
        201,
    )
    for stage in ("SCREENING", "INTERVIEW", "OFFER"):
        _ok(_patch(client, f"/api/candidates/{cand['id']}/stage", {"stage": stage}))

    moved = _ok(_patch(client, f"/api/candidates/{cand['id']}/stage", {"stage": "HIRED"}))
    assert moved["candidate"]["stage"] == "HIRED"
    assert moved["employee"]["jobTitle"] == "SRE"
    assert moved["employee"]["departmentId"] == dept
    assert moved["candidate"]["employeeId"] == moved["employee"]["id"]

    _error(_patch(client, f"/api/candidates/{cand['id']}/stage", {"stage": "HIRED"}), 409, "INVALID_TRANSITION")


def test_concurrent_change_between_read_and_write_is_409(app_client, monkeypatch):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    import actions.lifecycle_service as lifecycle

    real_lock = lifecycle.lock_employee

    def _lock_then_bump(repo, employee_id):
        row = real_lock(repo, employee_id)
        with SessionLocal() as other:
            other.execute(
                update(Employee).where(Employee.id == employee_id).values(version=Employee.version + 1, phone="+1 555 0199")
            )
            other.commit()
        return row

    monkeypatch.setattr(lifecycle, "lock_employee", _lock_then_bump)
    _error(_post(client, f"/api/employees/{emp['id']}/promote", {"jobTitle": "Staff Engineer"}), 409, "CONCURRENT_MODIFICATION")

    with SessionLocal() as db:
        row = db.get(Employee, emp["id"])
        assert (row.jobTitle, row.version) == ("Engineer", 2)
        assert db.execute(select(func.count()).select_from(CareerProgression)).scalar_one() == 0
        errors = list(db.execute(select(AuditLog).where(AuditLog.stageTag == "API_ERROR")).scalars())
        assert [(e.action, e.remark.split(":")[0]) for e in errors] == [("EMPLOYEE_PROMOTE", "CONCURRENT_MODIFICATION")]


def test_stale_data_at_commit_maps_to_409(app_client, monkeypatch):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    def _stale(*_args, **_kwargs):
        raise StaleDataError("UPDATE statement on table 'employees' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr("app.api.dispatch", _stale)
    _error(_post(client, f"/api/employees/{emp['id']}/offboard", {}), 409, "CONCURRENT_MODIFICATION")

    with SessionLocal() as db:
        assert db.get(Employee, emp["id"]).status == "ACTIVE"
        assert db.execute(select(func.count()).select_from(CareerProgression)).scalar_one() == 0
        errors = list(db.execute(select(AuditLog).where(AuditLog.stageTag == "API_ERROR")).scalars())
        assert [e.action for e in errors] == ["EMPLOYEE_OFFBOARD"]


def test_directory_and_org_chart_over_http(app_client):
    _app, client = app_client
    dept = _create_department(client)
    boss = _create_employee(client, dept, firstName="Morgan", lastName="Boss", jobTitle="Head of Engineering")
    report = _create_employee(client, dept, firstName="Riley", lastName="Report", managerId=boss["id"])

    found = _ok(client.get("/api/employees/directory/search?q=head"))
    assert [i["id"] for i in found["items"]] == [boss["id"]]
    assert found["items"][0]["departmentName"] == "Engineering"

    chart = _ok(client.get(f"/api/employees/org-chart?rootId={boss['id']}&depth=1"))
    assert chart["items"][0]["subordinates"][0]["id"] == report["id"]

    _error(client.get(f"/api/employees/org-chart?rootId={new_uuid()}"), 404, "NOT_FOUND")


def test_skills_and_certifications_over_http(app_client):
    _app, client = app_client
    dept = _create_department(client)
    emp = _create_employee(client, dept)

    skill = _ok(_post(client, "/api/skills", {"name": "Terraform", "category": "Infra"}), 201)
    assert [s["name"] for s in _ok(client.get("/api/skills"))["items"]] == ["Terraform"]

    assigned = _ok(_post(client, f"/api/employees/{emp['id']}/skills", {"skillId": skill["id"], "level": 2}), 201)
    raised = _ok(_put(client, f"/api/employees/{emp['id']}/skills/{assigned['id']}", {"level": 4}))
    assert raised["level"] == 4
    _error(_put(client, f"/api/employees/{emp['id']}/skills/{assigned['id']}", {"level": 9}), 400, "VALIDATION_ERROR")
    _ok(client.delete(f"/api/employees/{emp['id']}/skills/{assigned['id']}", headers=HEADERS))
    assert _ok(client.get(f"/api/employees/{emp['id']}/skills"))["items"] == []

    cert = _ok(
        _post(client, f"/api/employees/{emp['id']}/certifications", {"name": "CKAD", "issuedAt": "2024-05-01"}),
        201,
    )
    assert [c["id"] for c in _ok(client.get(f"/api/employees/{emp['id']}/certifications"))["items"]] == [cert["id"]]
    _ok(client.delete(f"/api/employees/{emp['id']}/certifications/{cert['id']}", headers=HEADERS))
    _error(client.delete(f"/api/employees/{emp['id']}/certifications/{cert['id']}", headers=HEADERS), 404, "NOT_FOUND")


def test_job_update_archive_and_kpis_over_http(app_client):
    _app, client = app_client
    dept = _create_department(client)
    job = _ok(_post(client, "/api/jobs", {"title": "Data Engineer", "description": "Pipelines all day.", "departmentId": dept}), 201)

    updated = _ok(_put(client, f"/api/jobs/{job['id']}", {"title": "Senior Data Engineer"}))
    assert updated["title"] == "Senior Data Engineer"
    assert updated["isActive"] is True

    archived = _ok(client.delete(f"/api/jobs/{job['id']}", headers=HEADERS))
    assert archived["isActive"] is False
    assert _ok(client.get(f"/api/jobs/{job['id']}"))["isActive"] is False

    _error(
        _post(client, f"/api/jobs/{job['id']}/candidates", {"firstName": "Kim", "lastName": "Park", "email": "kim@example.com"}),
        400,
        "VALIDATION_ERROR",
    )

    kpis = _ok(client.get("/api/recruitment/kpis"))
    assert kpis["totals"] == {"jobs": 1, "candidates": 0, "hired": 0}
    _error(client.get("/api/recruitment/kpis?from=yesterday"), 400, "VALIDATION_ERROR")
