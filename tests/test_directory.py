from __future__ import annotations

import pytest

from actions.directory import build_org_chart, directory_search, org_chart_get
from actions.hr_repo import HrRepository
from seed import seed_department, seed_employee
from utils import AuthContext, NotFoundError, ValidationError, new_uuid

ACTOR = AuthContext(valid=True, userId="hr-1", role="HR")


def _names(items) -> list[str]:
    return [f"{i['firstName']} {i['lastName']}" for i in items]


def test_search_matches_name_email_and_title_case_insensitively(db, cfg):
    eng = seed_department(db, "Engineering")
    seed_employee(db, department_id=eng.id, first_name="Ada", last_name="Lovelace", job_title="Analyst")
    seed_employee(db, department_id=eng.id, first_name="Alan", last_name="Turing", email="enigma@example.com")
    seed_employee(db, department_id=eng.id, first_name="Grace", last_name="Hopper", job_title="Compiler Lead")

    assert _names(directory_search({"q": "LOVE"}, ACTOR, db, cfg)["items"]) == ["Ada Lovelace"]
    assert _names(directory_search({"q": "enigma"}, ACTOR, db, cfg)["items"]) == ["Alan Turing"]
    assert _names(directory_search({"q": "compiler"}, ACTOR, db, cfg)["items"]) == ["Grace Hopper"]


def test_search_orders_by_last_then_first_name_and_filters_department(db, cfg):
    eng = seed_department(db, "Engineering")
    ops = seed_department(db, "Operations")
    seed_employee(db, department_id=eng.id, first_name="Zoe", last_name="Adams")
    seed_employee(db, department_id=eng.id, first_name="Amy", last_name="Adams")
    seed_employee(db, department_id=ops.id, first_name="Bob", last_name="Baker")

    out = directory_search({}, ACTOR, db, cfg)
    assert _names(out["items"]) == ["Amy Adams", "Zoe Adams", "Bob Baker"]
    assert out["total"] == 3

    only_ops = directory_search({"departmentId": ops.id}, ACTOR, db, cfg)
    assert _names(only_ops["items"]) == ["Bob Baker"]
    assert only_ops["items"][0]["departmentName"] == "Operations"


def test_search_pages_with_limit_and_offset(db, cfg):
    dept = seed_department(db)
    for last in ("Able", "Baker", "Cole"):
        seed_employee(db, department_id=dept.id, last_name=last)

    page = directory_search({"limit": "2", "offset": "1"}, ACTOR, db, cfg)
    assert [i["lastName"] for i in page["items"]] == ["Baker", "Cole"]
    assert page["total"] == 3


@pytest.mark.parametrize("payload", [{"departmentId": "D1"}, {"limit": 0}, {"limit": 101}, {"offset": -1}])
def test_search_rejects_bad_filters(db, cfg, payload):
    with pytest.raises(ValidationError):
        directory_search(payload, ACTOR, db, cfg)


def _org(db):
    dept = seed_department(db)
    ceo = seed_employee(db, department_id=dept.id, first_name="Cora", last_name="Chief")
    cto = seed_employee(db, department_id=dept.id, first_name="Tom", last_name="Tech", manager_id=ceo.id)
    cfo = seed_employee(db, department_id=dept.id, first_name="Fay", last_name="Finance", manager_id=ceo.id)
    dev = seed_employee(db, department_id=dept.id, first_name="Dan", last_name="Dev", manager_id=cto.id)
    intern = seed_employee(db, department_id=dept.id, first_name="Ian", last_name="Intern", manager_id=dev.id)
    return ceo, cto, cfo, dev, intern


def test_org_chart_from_top_level_respects_depth(db, cfg):
    ceo, cto, cfo, dev, _intern = _org(db)

    trees = org_chart_get({}, ACTOR, db, cfg)["items"]
    assert [t["id"] for t in trees] == [ceo.id]
    subs = trees[0]["subordinates"]
    # direct reports are ordered by last name
    assert [s["id"] for s in subs] == [cfo.id, cto.id]
    assert [s["id"] for s in subs[1]["subordinates"]] == [dev.id]
    # default depth is two levels below the root
    assert subs[1]["subordinates"][0]["subordinates"] == []


def test_org_chart_for_given_root(db, cfg):
    _ceo, cto, _cfo, dev, intern = _org(db)

    trees = build_org_chart(HrRepository(db), root_id=cto.id, depth=3)
    assert [t["id"] for t in trees] == [cto.id]
    assert trees[0]["subordinates"][0]["id"] == dev.id
    assert trees[0]["subordinates"][0]["subordinates"][0]["id"] == intern.id

    shallow = org_chart_get({"rootId": cto.id, "depth": "1"}, ACTOR, db, cfg)
    assert shallow["items"][0]["subordinates"][0]["subordinates"] == []


def test_org_chart_unknown_root_is_not_found(db, cfg):
    with pytest.raises(NotFoundError):
        org_chart_get({"rootId": new_uuid()}, ACTOR, db, cfg)


def test_org_chart_depth_bounds(db, cfg):
    with pytest.raises(ValidationError):
        org_chart_get({"depth": 0}, ACTOR, db, cfg)
    with pytest.raises(ValidationError):
        org_chart_get({"depth": 11}, ACTOR, db, cfg)
