from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from models import (
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
from utils import PersistenceError


_log = logging.getLogger("repo")

MAX_PAGE_SIZE = 200


def _clean_id(value: Any) -> str:
    return str(value or "").strip().lower()


def _page(limit: Any, offset: Any) -> tuple[int, int]:
    try:
        lim = int(limit)
    except (TypeError, ValueError):
        lim = 50
    try:
        off = int(offset)
    except (TypeError, ValueError):
        off = 0
    return max(1, min(MAX_PAGE_SIZE, lim)), max(0, off)


class HrRepository:
    """
    Persistence collaborator for the lifecycle and pipeline engines.

    All methods work inside the caller's session; nothing here commits. `flush()` pushes
    pending writes so that constraint and version conflicts surface inside the operation
    that caused them, translated to `PersistenceError`.
    """

    def __init__(self, db):
        self.db = db

    # -- flush / error translation ------------------------------------------------

    def flush(self) -> None:
        try:
            self.db.flush()
        except StaleDataError as e:
            _log.warning("concurrent modification: %s", e)
            raise PersistenceError(
                "Record was modified concurrently; reload and retry",
                code="CONCURRENT_MODIFICATION",
                http_status=409,
            ) from e
        except IntegrityError as e:
            _log.warning("integrity error: %s", getattr(e, "orig", e))
            raise PersistenceError("Write violates a database constraint", code="INTEGRITY_ERROR", http_status=409) from e
        except DBAPIError as e:
            _log.exception("database error during flush")
            raise PersistenceError("Database write failed") from e

    def current_version(self, model, entity_id: str) -> Optional[int]:
        """Committed row version, or None when the row does not exist."""
        eid = _clean_id(entity_id)
        if not eid:
            return None
        return self.db.execute(select(model.version).where(model.id == eid)).scalar_one_or_none()

    # -- employees ---------------------------------------------------------------

    def get_employee(self, employee_id: str, lock: bool = False) -> Optional[Employee]:
        eid = _clean_id(employee_id)
        if not eid:
            return None
        stmt = select(Employee).where(Employee.id == eid)
        if lock:
            stmt = stmt.with_for_update(of=Employee)
        return self.db.execute(stmt).scalars().first()

    def save_employee(self, emp: Employee) -> Employee:
        self.db.add(emp)
        self.flush()
        return emp

    def get_employee_manager_candidate(self, employee_id: str) -> Optional[Employee]:
        """Fetch a prospective manager without locking it."""
        return self.get_employee(employee_id, lock=False)

    def manager_chain(self, employee_id: str, *, max_depth: int = 64) -> list[str]:
        """
        Ids from `employee_id` upward through `managerId`, starting with `employee_id`.
        Stops at the top of the hierarchy, at an existing loop, or after `max_depth` hops.
        """

        chain: list[str] = []
        seen: set[str] = set()
        current = _clean_id(employee_id)
        while current and current not in seen and len(chain) < max_depth:
            seen.add(current)
            chain.append(current)
            current = _clean_id(
                self.db.execute(select(Employee.managerId).where(Employee.id == current)).scalar_one_or_none()
            )
        return chain

    def find_employee_by_email(self, email: str) -> Optional[Employee]:
        em = str(email or "").strip().lower()
        if not em:
            return None
        return self.db.execute(select(Employee).where(func.lower(Employee.email) == em)).scalars().first()

    def list_employees(
        self,
        *,
        status: str = "",
        department_id: str = "",
        manager_id: str = "",
        search: str = "",
        limit: Any = 50,
        offset: Any = 0,
    ) -> tuple[list[Employee], int]:
        stmt = select(Employee)
        if status:
            stmt = stmt.where(Employee.status == status)
        if department_id:
            stmt = stmt.where(Employee.departmentId == _clean_id(department_id))
        if manager_id:
            stmt = stmt.where(Employee.managerId == _clean_id(manager_id))
        if search:
            like = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                func.lower(Employee.firstName).like(like)
                | func.lower(Employee.lastName).like(like)
                | func.lower(Employee.email).like(like)
            )

        total = int(self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one() or 0)
        lim, off = _page(limit, offset)
        rows = self.db.execute(stmt.order_by(Employee.createdAt.desc(), Employee.id).limit(lim).offset(off)).scalars().all()
        return list(rows), total

    # -- candidates --------------------------------------------------------------

    def get_candidate(self, candidate_id: str, lock: bool = False) -> Optional[Candidate]:
        cid = _clean_id(candidate_id)
        if not cid:
            return None
        stmt = select(Candidate).where(Candidate.id == cid)
        if lock:
            stmt = stmt.with_for_update(of=Candidate)
        return self.db.execute(stmt).scalars().first()

    def save_candidate(self, cand: Candidate) -> Candidate:
        self.db.add(cand)
        self.flush()
        return cand

    def find_candidate_by_email(self, job_posting_id: str, email: str) -> Optional[Candidate]:
        em = str(email or "").strip().lower()
        return (
            self.db.execute(
                select(Candidate).where(
                    Candidate.jobPostingId == _clean_id(job_posting_id),
                    func.lower(Candidate.email) == em,
                )
            )
            .scalars()
            .first()
        )

    def list_candidates(self, job_posting_id: str, *, stage: str = "", min_score: Optional[int] = None) -> list[Candidate]:
        stmt = select(Candidate).where(Candidate.jobPostingId == _clean_id(job_posting_id))
        if stage:
            stmt = stmt.where(Candidate.stage == stage)
        if min_score is not None:
            stmt = stmt.where(Candidate.score.is_not(None), Candidate.score >= int(min_score))
        return list(self.db.execute(stmt.order_by(Candidate.createdAt, Candidate.id)).scalars().all())

    # -- history -----------------------------------------------------------------

    def insert_history(self, row):
        self.db.add(row)
        self.flush()
        return row

    def next_seq(self, model, parent_id: str) -> int:
        parent_col = model.candidateId if model is CandidateStageHistory else model.employeeId
        n = self.db.execute(select(func.count()).select_from(model).where(parent_col == parent_id)).scalar_one()
        return int(n or 0) + 1

    def list_career_history(self, employee_id: str) -> list[CareerProgression]:
        stmt = (
            select(CareerProgression)
            .where(CareerProgression.employeeId == _clean_id(employee_id))
            .order_by(CareerProgression.seq, CareerProgression.createdAt)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_evaluations(self, employee_id: str) -> list[Evaluation]:
        stmt = (
            select(Evaluation)
            .where(Evaluation.employeeId == _clean_id(employee_id))
            .order_by(Evaluation.date.desc(), Evaluation.createdAt.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_stage_history(self, candidate_id: str) -> list[CandidateStageHistory]:
        stmt = (
            select(CandidateStageHistory)
            .where(CandidateStageHistory.candidateId == _clean_id(candidate_id))
            .order_by(CandidateStageHistory.seq)
        )
        return list(self.db.execute(stmt).scalars().all())

    # -- departments / postings / interviews -------------------------------------

    def get_department(self, department_id: str) -> Optional[Department]:
        did = _clean_id(department_id)
        if not did:
            return None
        return self.db.execute(select(Department).where(Department.id == did)).scalars().first()

    def find_department_by_name(self, name: str) -> Optional[Department]:
        nm = str(name or "").strip().lower()
        return self.db.execute(select(Department).where(func.lower(Department.name) == nm)).scalars().first()

    def list_departments(self) -> list[Department]:
        return list(self.db.execute(select(Department).order_by(Department.name)).scalars().all())

    def get_job_posting(self, job_posting_id: str) -> Optional[JobPosting]:
        jid = _clean_id(job_posting_id)
        if not jid:
            return None
        return self.db.execute(select(JobPosting).where(JobPosting.id == jid)).scalars().first()

    def list_job_postings(self, *, active_only: bool = False, department_id: str = "") -> list[JobPosting]:
        stmt = select(JobPosting)
        if active_only:
            stmt = stmt.where(JobPosting.isActive.is_(True))
        if department_id:
            stmt = stmt.where(JobPosting.departmentId == _clean_id(department_id))
        return list(self.db.execute(stmt.order_by(JobPosting.createdAt.desc(), JobPosting.id)).scalars().all())

    def get_interview(self, interview_id: str, lock: bool = False) -> Optional[Interview]:
        iid = _clean_id(interview_id)
        if not iid:
            return None
        stmt = select(Interview).where(Interview.id == iid)
        if lock:
            stmt = stmt.with_for_update(of=Interview)
        return self.db.execute(stmt).scalars().first()

    def list_interviews(self, candidate_id: str) -> list[Interview]:
        stmt = select(Interview).where(Interview.candidateId == _clean_id(candidate_id)).order_by(Interview.scheduledAt)
        return list(self.db.execute(stmt).scalars().all())

    # -- directory / org chart ---------------------------------------------------

    def search_directory(self, *, q: str = "", department_id: str = "", limit: int = 20, offset: int = 0) -> tuple[list[Employee], int]:
        stmt = select(Employee)
        if q:
            like = f"%{q.strip().lower()}%"
            stmt = stmt.where(
                func.lower(Employee.firstName).like(like)
                | func.lower(Employee.lastName).like(like)
                | func.lower(Employee.email).like(like)
                | func.lower(Employee.jobTitle).like(like)
            )
        if department_id:
            stmt = stmt.where(Employee.departmentId == _clean_id(department_id))

        total = int(self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one() or 0)
        lim, off = _page(limit, offset)
        stmt = stmt.order_by(Employee.lastName, Employee.firstName, Employee.id).limit(lim).offset(off)
        return list(self.db.execute(stmt).scalars().all()), total

    def list_top_level_employees(self) -> list[Employee]:
        stmt = select(Employee).where(Employee.managerId.is_(None))
        return list(self.db.execute(stmt.order_by(Employee.lastName, Employee.firstName, Employee.id)).scalars().all())

    def list_direct_reports(self, manager_id: str) -> list[Employee]:
        stmt = select(Employee).where(Employee.managerId == _clean_id(manager_id))
        return list(self.db.execute(stmt.order_by(Employee.lastName, Employee.firstName, Employee.id)).scalars().all())

    # -- skills / certifications -------------------------------------------------

    def list_skills(self) -> list[Skill]:
        return list(self.db.execute(select(Skill).order_by(Skill.name)).scalars().all())

    def get_skill(self, skill_id: str) -> Optional[Skill]:
        sid = _clean_id(skill_id)
        if not sid:
            return None
        return self.db.execute(select(Skill).where(Skill.id == sid)).scalars().first()

    def find_skill_by_name(self, name: str) -> Optional[Skill]:
        nm = str(name or "").strip().lower()
        return self.db.execute(select(Skill).where(func.lower(Skill.name) == nm)).scalars().first()

    def list_skill_assignments(self, employee_id: str) -> list[tuple[SkillAssignment, Skill]]:
        stmt = (
            select(SkillAssignment, Skill)
            .join(Skill, Skill.id == SkillAssignment.skillId)
            .where(SkillAssignment.employeeId == _clean_id(employee_id))
            .order_by(Skill.name)
        )
        return [(a, s) for a, s in self.db.execute(stmt).all()]

    def get_skill_assignment(self, assignment_id: str) -> Optional[SkillAssignment]:
        aid = _clean_id(assignment_id)
        if not aid:
            return None
        return self.db.execute(select(SkillAssignment).where(SkillAssignment.id == aid)).scalars().first()

    def find_skill_assignment(self, employee_id: str, skill_id: str) -> Optional[SkillAssignment]:
        stmt = select(SkillAssignment).where(
            SkillAssignment.employeeId == _clean_id(employee_id),
            SkillAssignment.skillId == _clean_id(skill_id),
        )
        return self.db.execute(stmt).scalars().first()

    def list_certifications(self, employee_id: str) -> list[Certification]:
        stmt = (
            select(Certification)
            .where(Certification.employeeId == _clean_id(employee_id))
            .order_by(Certification.issuedAt.desc(), Certification.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_certification(self, certification_id: str) -> Optional[Certification]:
        cid = _clean_id(certification_id)
        if not cid:
            return None
        return self.db.execute(select(Certification).where(Certification.id == cid)).scalars().first()

    def delete(self, row) -> None:
        self.db.delete(row)
        self.flush()

    # -- recruitment KPIs --------------------------------------------------------

    def _created_between(self, stmt, column, date_from: Optional[str], date_to: Optional[str]):
        if date_from:
            stmt = stmt.where(column >= date_from)
        if date_to:
            stmt = stmt.where(column <= date_to)
        return stmt

    def count_job_postings(self, *, date_from: Optional[str] = None, date_to: Optional[str] = None) -> int:
        stmt = self._created_between(select(func.count()).select_from(JobPosting), JobPosting.createdAt, date_from, date_to)
        return int(self.db.execute(stmt).scalar_one() or 0)

    def candidate_stage_counts(self, *, date_from: Optional[str] = None, date_to: Optional[str] = None) -> dict[str, int]:
        stmt = self._created_between(
            select(Candidate.stage, func.count()).group_by(Candidate.stage), Candidate.createdAt, date_from, date_to
        )
        return {str(stage): int(n) for stage, n in self.db.execute(stmt).all()}

    def hire_timestamps(self, *, date_from: Optional[str] = None, date_to: Optional[str] = None) -> list[tuple[str, str]]:
        """(applied, hired) timestamps for hired candidates created in the window."""
        stmt = (
            select(Candidate.createdAt, CandidateStageHistory.createdAt)
            .join(CandidateStageHistory, CandidateStageHistory.candidateId == Candidate.id)
            .where(Candidate.stage == "HIRED", CandidateStageHistory.toStage == "HIRED")
        )
        stmt = self._created_between(stmt, Candidate.createdAt, date_from, date_to)
        return [(str(a or ""), str(h or "")) for a, h in self.db.execute(stmt).all()]
