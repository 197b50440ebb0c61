from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, event

from db import Base


EMPLOYEE_STATUSES = ("ACTIVE", "PROBATION", "INACTIVE", "TERMINATED", "RESIGNED")
TERMINAL_EMPLOYEE_STATUSES = frozenset({"TERMINATED", "RESIGNED"})
JOB_TYPES = ("FULL_TIME", "PART_TIME", "CONTRACT", "INTERN")

PROGRESSION_TYPES = ("PROMOTION", "TRANSFER", "PROBATION_START", "PROBATION_END", "OFFBOARD")

CANDIDATE_STAGES = ("APPLIED", "SCREENING", "INTERVIEW", "OFFER", "HIRED", "REJECTED")
TERMINAL_CANDIDATE_STAGES = frozenset({"HIRED", "REJECTED"})

INTERVIEW_STATUSES = ("SCHEDULED", "COMPLETED", "CANCELLED")


class Department(Base):
    __tablename__ = "departments"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String, primary_key=True)
    firstName = Column(Text, nullable=False, default="")
    lastName = Column(Text, nullable=False, default="")
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String, nullable=False, default="")
    # Changed only by the lifecycle engine, never by generic update.
    status = Column(String, nullable=False, default="ACTIVE", index=True)
    jobType = Column(String, nullable=False, default="FULL_TIME")
    jobTitle = Column(Text, nullable=False, default="")
    departmentId = Column(String, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False, index=True)
    managerId = Column(String, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=True, index=True)
    salary = Column(Numeric(12, 2), nullable=True)
    hireDate = Column(Text, nullable=False, default="")
    candidateId = Column(String, nullable=False, default="", index=True)
    version = Column(Integer, nullable=False, default=1)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")

    __mapper_args__ = {"version_id_col": version}


class CareerProgression(Base):
    """Append-only lifecycle history. One row per lifecycle operation."""

    __tablename__ = "career_progressions"

    id = Column(String, primary_key=True)
    employeeId = Column(String, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    effectiveDate = Column(Text, nullable=False, default="")
    previousStatus = Column(String, nullable=False, default="")
    newStatus = Column(String, nullable=False, default="")
    previousJobTitle = Column(Text, nullable=True)
    newJobTitle = Column(Text, nullable=True)
    previousSalary = Column(Numeric(12, 2), nullable=True)
    newSalary = Column(Numeric(12, 2), nullable=True)
    previousDepartmentId = Column(String, nullable=True)
    newDepartmentId = Column(String, nullable=True)
    previousManagerId = Column(String, nullable=True)
    newManagerId = Column(String, nullable=True)
    reason = Column(Text, nullable=False, default="")
    approvedById = Column(String, nullable=True)
    evaluationId = Column(String, nullable=True)
    seq = Column(Integer, nullable=False, default=0)
    createdAt = Column(Text, nullable=False, default="", index=True)


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(String, primary_key=True)
    employeeId = Column(String, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    evaluatorId = Column(String, nullable=True)
    date = Column(Text, nullable=False, default="")
    score = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=False, default="")
    probation = Column(Boolean, nullable=False, default=False)
    createdAt = Column(Text, nullable=False, default="", index=True)


class JobPosting(Base):
    __tablename__ = "job_postings"

    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    departmentId = Column(String, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False, index=True)
    isActive = Column(Boolean, nullable=False, default=True, index=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Candidate(Base):
    __tablename__ = "candidates"
    __table_args__ = (UniqueConstraint("jobPostingId", "email", name="uq_candidates_job_email"),)

    id = Column(String, primary_key=True)
    jobPostingId = Column(String, ForeignKey("job_postings.id", ondelete="RESTRICT"), nullable=False, index=True)
    firstName = Column(Text, nullable=False, default="")
    lastName = Column(Text, nullable=False, default="")
    email = Column(String, nullable=False, default="", index=True)
    phone = Column(String, nullable=False, default="")
    resumeUrl = Column(Text, nullable=False, default="")
    stage = Column(String, nullable=False, default="APPLIED", index=True)
    score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=False, default="")
    employeeId = Column(String, nullable=False, default="", index=True)
    version = Column(Integer, nullable=False, default=1)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")

    __mapper_args__ = {"version_id_col": version}


class CandidateStageHistory(Base):
    """Append-only record of candidate stage transitions."""

    __tablename__ = "candidate_stage_history"

    id = Column(String, primary_key=True)
    candidateId = Column(String, ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False, index=True)
    fromStage = Column(String, nullable=False, default="")
    toStage = Column(String, nullable=False, default="")
    reason = Column(Text, nullable=False, default="")
    employeeId = Column(String, nullable=False, default="")
    seq = Column(Integer, nullable=False, default=0)
    createdAt = Column(Text, nullable=False, default="", index=True)


class Interview(Base):
    __tablename__ = "interviews"

    id = Column(String, primary_key=True)
    candidateId = Column(String, ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False, index=True)
    interviewerId = Column(String, nullable=True)
    scheduledAt = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="SCHEDULED", index=True)
    feedback = Column(Text, nullable=False, default="")
    rating = Column(Integer, nullable=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Skill(Base):
    __tablename__ = "skills"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    category = Column(String, nullable=False, default="", index=True)
    createdAt = Column(Text, nullable=False, default="")


class SkillAssignment(Base):
    __tablename__ = "skill_assignments"
    __table_args__ = (UniqueConstraint("employeeId", "skillId", name="uq_skill_assignments_employee_skill"),)

    id = Column(String, primary_key=True)
    employeeId = Column(String, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    skillId = Column(String, ForeignKey("skills.id", ondelete="RESTRICT"), nullable=False, index=True)
    level = Column(Integer, nullable=False, default=1)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class Certification(Base):
    __tablename__ = "certifications"

    id = Column(String, primary_key=True)
    employeeId = Column(String, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(Text, nullable=False, default="")
    issuer = Column(Text, nullable=False, default="")
    issuedAt = Column(Text, nullable=False, default="", index=True)
    expiresAt = Column(Text, nullable=True)
    createdAt = Column(Text, nullable=False, default="")


class AuditLog(Base):
    __tablename__ = "audit_log"

    logId = Column(String, primary_key=True)
    entityType = Column(String, nullable=False, default="", index=True)
    entityId = Column(String, nullable=False, default="", index=True)
    action = Column(String, nullable=False, default="", index=True)
    fromState = Column(String, nullable=False, default="")
    toState = Column(String, nullable=False, default="")
    stageTag = Column(String, nullable=False, default="", index=True)
    remark = Column(Text, nullable=False, default="")
    actorUserId = Column(String, nullable=False, default="", index=True)
    actorRole = Column(String, nullable=False, default="", index=True)
    at = Column(Text, nullable=False, default="", index=True)
    correlationId = Column(String, nullable=False, default="", index=True)
    beforeJson = Column(Text, nullable=False, default="")
    afterJson = Column(Text, nullable=False, default="")
    metaJson = Column(Text, nullable=False, default="")


class ImmutableRowError(RuntimeError):
    pass


HISTORY_MODELS = (CareerProgression, Evaluation, CandidateStageHistory, AuditLog)


def _forbid_mutation(_mapper, _connection, target) -> None:
    raise ImmutableRowError(f"{type(target).__name__} rows are append-only")


for _model in HISTORY_MODELS:
    event.listen(_model, "before_update", _forbid_mutation)
    event.listen(_model, "before_delete", _forbid_mutation)
