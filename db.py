from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()

# Bound in init_engine(); safe to import before the app starts.
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None


def _enable_sqlite_fk(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def init_engine(database_url: str, *, pool_size: int = 5, echo: bool = False) -> Engine:
    """
    Create the process-wide engine and bind SessionLocal to it.

    In-memory SQLite shares a single connection so that every session sees the same database.
    """

    global _engine

    url = str(database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is required")

    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = pool_size
        kwargs["max_overflow"] = pool_size * 2
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        _enable_sqlite_fk(engine)

    SessionLocal.configure(bind=engine)
    _engine = engine
    return engine


def ping_db(engine: Optional[Engine] = None) -> bool:
    eng = engine or _engine
    if eng is None:
        return False
    try:
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def get_pool_stats() -> dict[str, Any]:
    if _engine is None:
        return {}
    pool = _engine.pool
    status = getattr(pool, "status", None)
    return {"class": type(pool).__name__, "status": status() if callable(status) else ""}
