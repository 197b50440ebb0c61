from __future__ import annotations

import logging

from sqlalchemy import inspect, text


_log = logging.getLogger("schema")


def _quoted(name: str) -> str:
    escaped = str(name).replace('"', '""')
    return f'"{escaped}"'


def _ensure_column(engine, *, table: str, column: str, ddl_type: str, default_sql: str = "''") -> None:
    insp = inspect(engine)
    if table not in insp.get_table_names():
        return
    cols = {c.get("name") for c in insp.get_columns(table)}
    if column in cols:
        return
    ddl = f"ALTER TABLE {_quoted(table)} ADD COLUMN {_quoted(column)} {ddl_type} DEFAULT {default_sql}"
    with engine.begin() as conn:
        conn.execute(text(ddl))
    _log.info("schema: added %s.%s", table, column)


def _ensure_index(engine, *, name: str, table: str, column: str) -> None:
    ddl = f"CREATE INDEX IF NOT EXISTS {_quoted(name)} ON {_quoted(table)}({_quoted(column)})"
    with engine.begin() as conn:
        conn.execute(text(ddl))


def ensure_schema(engine) -> None:
    """
    Lightweight, idempotent schema evolution (no Alembic).

    `create_all` only creates missing tables; columns added after a database was first
    created are patched in here, then version counters are backfilled.
    """

    # Optimistic concurrency counters.
    _ensure_column(engine, table="employees", column="version", ddl_type="INTEGER", default_sql="1")
    _ensure_column(engine, table="candidates", column="version", ddl_type="INTEGER", default_sql="1")

    # Hire conversion links.
    _ensure_column(engine, table="employees", column="candidateId", ddl_type="TEXT")
    _ensure_column(engine, table="candidates", column="employeeId", ddl_type="TEXT")
    _ensure_index(engine, name="ix_employees_candidateId", table="employees", column="candidateId")
    _ensure_index(engine, name="ix_candidates_employeeId", table="candidates", column="employeeId")

    # Career progression: status / salary tracking and probation evaluation link.
    _ensure_column(engine, table="career_progressions", column="previousStatus", ddl_type="TEXT")
    _ensure_column(engine, table="career_progressions", column="newStatus", ddl_type="TEXT")
    _ensure_column(engine, table="career_progressions", column="previousSalary", ddl_type="NUMERIC(12, 2)", default_sql="NULL")
    _ensure_column(engine, table="career_progressions", column="newSalary", ddl_type="NUMERIC(12, 2)", default_sql="NULL")
    _ensure_column(engine, table="career_progressions", column="evaluationId", ddl_type="TEXT", default_sql="NULL")
    _ensure_column(engine, table="career_progressions", column="seq", ddl_type="INTEGER", default_sql="0")
    _ensure_index(engine, name="ix_career_progressions_seq", table="career_progressions", column="seq")

    _ensure_column(engine, table="candidate_stage_history", column="employeeId", ddl_type="TEXT")
    _ensure_column(engine, table="candidate_stage_history", column="seq", ddl_type="INTEGER", default_sql="0")

    _ensure_index(engine, name="ix_audit_log_entity", table="audit_log", column="entityId")

    _backfill_versions(engine)


def _backfill_versions(engine) -> None:
    with engine.begin() as conn:
        for table in ("employees", "candidates"):
            res = conn.execute(
                text(f"UPDATE {_quoted(table)} SET {_quoted('version')} = 1 WHERE {_quoted('version')} IS NULL OR {_quoted('version')} < 1")
            )
            if res.rowcount:
                _log.info("schema: backfilled version on %s rows of %s", res.rowcount, table)
