"""
Read-only people views: directory search and the management org chart.
"""
from __future__ import annotations

from typing import Any

from actions.helpers import serialize_employee
from actions.hr_repo import HrRepository
from actions.validation import validate_directory_search, validate_org_chart
from models import Employee
from utils import AuthContext, NotFoundError


def _department_names(repo: HrRepository) -> dict[str, str]:
    return {d.id: d.name or "" for d in repo.list_departments()}


def directory_search(data, auth: AuthContext | None, db, cfg):
    """Case-insensitive match on first/last name, email and job title, optionally within one department."""

    inp = validate_directory_search(data).unwrap()
    repo = HrRepository(db)
    rows, total = repo.search_directory(q=inp.q, department_id=inp.department_id or "", limit=inp.limit, offset=inp.offset)

    names = _department_names(repo)
    items = []
    for emp in rows:
        out = serialize_employee(emp)
        out["departmentName"] = names.get(emp.departmentId, "")
        items.append(out)
    return {"items": items, "total": total, "limit": inp.limit, "offset": inp.offset}


def _node(emp: Employee, names: dict[str, str]) -> dict[str, Any]:
    return {
        "id": emp.id,
        "firstName": emp.firstName or "",
        "lastName": emp.lastName or "",
        "email": emp.email or "",
        "jobTitle": emp.jobTitle or "",
        "status": emp.status or "",
        "departmentId": emp.departmentId,
        "departmentName": names.get(emp.departmentId, ""),
        "managerId": emp.managerId,
    }


def build_org_chart(repo: HrRepository, *, root_id: str | None = None, depth: int = 2) -> list[dict[str, Any]]:
    """
    Management trees down to `depth` levels below each seed.

    With `root_id` the single tree under that employee is returned; otherwise every
    employee without a manager seeds a tree.
    """

    if root_id:
        root = repo.get_employee(root_id)
        if not root:
            raise NotFoundError(f"Employee {root_id} not found")
        seeds = [root]
    else:
        seeds = repo.list_top_level_employees()

    names = _department_names(repo)

    def _expand(emp: Employee, level: int) -> dict[str, Any]:
        node = _node(emp, names)
        if level >= depth:
            node["subordinates"] = []
            return node
        node["subordinates"] = [_expand(sub, level + 1) for sub in repo.list_direct_reports(emp.id)]
        return node

    return [_expand(seed, 0) for seed in seeds]


def org_chart_get(data, auth: AuthContext | None, db, cfg):
    inp = validate_org_chart(data).unwrap()
    trees = build_org_chart(HrRepository(db), root_id=inp.root_id, depth=inp.depth)
    return {"items": trees, "depth": inp.depth, "rootId": inp.root_id}
