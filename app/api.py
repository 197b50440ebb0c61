from __future__ import annotations

import logging
import os
import re
from typing import Any

from flask import current_app, g, request
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from actions import READ_ACTIONS, dispatch
from cache_layer import discard_invalidations, flush_invalidations
from config import Config
from db import SessionLocal
from models import AuditLog
from utils import ApiError, AuthContext, PersistenceError, err, iso_utc_now, ok, redact_for_audit, safe_json_string


_log = logging.getLogger("api")


def actor_from_headers() -> AuthContext:
    """
    Caller identity as forwarded by the gateway. Authentication happens upstream; the core
    only records who asked for a change.
    """

    user_id = str(request.headers.get("X-Actor-Id") or "").strip()
    role = str(request.headers.get("X-Actor-Role") or "").strip().upper()
    if not user_id:
        return AuthContext(valid=False, userId="ANONYMOUS", role=role or "PUBLIC")
    return AuthContext(valid=True, userId=user_id[:128], role=role or "USER")


def json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        if request.get_data(cache=True):
            raise ApiError("BAD_REQUEST", "Request body must be valid JSON", http_status=400)
        return {}
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "Request body must be a JSON object", http_status=400)
    return body


def _short(msg: str, limit: int = 300) -> str:
    msg = re.sub(r"\s+", " ", msg or "").strip()
    return msg[:limit] + "..." if len(msg) > limit else msg


def _api_call_audit(db, action: str, auth_ctx: AuthContext, data: Any) -> None:
    db.add(
        AuditLog(
            logId=f"LOG-{os.urandom(16).hex()}",
            entityType="API",
            entityId=str(auth_ctx.userId or ""),
            action=action,
            stageTag="API_CALL",
            actorUserId=str(auth_ctx.userId or ""),
            actorRole=str(auth_ctx.role or ""),
            at=iso_utc_now(),
            correlationId=str(getattr(g, "request_id", "") or ""),
            metaJson=safe_json_string({"data": redact_for_audit(data or {})}),
        )
    )


def write_error_audit(action: str, auth_ctx: AuthContext | None, data: Any, err_obj: ApiError) -> None:
    """Record a failed call in its own session; the request transaction is already rolled back."""

    db2 = None
    try:
        db2 = SessionLocal()
        db2.add(
            AuditLog(
                logId=f"LOG-{os.urandom(16).hex()}",
                entityType="API",
                entityId=str(auth_ctx.userId or "") if auth_ctx else "PUBLIC",
                action=str(action or "").upper() or "UNKNOWN",
                stageTag="API_ERROR",
                remark=f"{err_obj.code}: {err_obj.message}",
                actorUserId=str(auth_ctx.userId or "") if auth_ctx else "PUBLIC",
                actorRole=str(auth_ctx.role or "") if auth_ctx else "PUBLIC",
                at=iso_utc_now(),
                correlationId=str(getattr(g, "request_id", "") or ""),
                metaJson=safe_json_string(
                    {
                        "data": redact_for_audit(data or {}),
                        "error": {"code": err_obj.code, "message": err_obj.message},
                    }
                ),
            )
        )
        db2.commit()
    except Exception:
        _log.warning("failed to write API_ERROR audit for action=%s", action, exc_info=True)
    finally:
        if db2 is not None:
            db2.close()


def _unexpected_message(cfg: Config, label: str, exc: BaseException) -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    suffix = f" (requestId: {request_id})" if request_id else ""
    if cfg.IS_PRODUCTION:
        return f"{label}{suffix}"
    detail = type(exc).__name__
    if cfg.DEBUG_ERROR_DETAILS:
        raw = _short(str(getattr(exc, "orig", None) or exc))
        if raw:
            detail = f"{detail}: {raw}"
    return f"{label}: {detail}{suffix}"


def rest_handle(action: str, data: dict[str, Any], *, http_status: int = 200):
    """
    Run one action in its own session: dispatch, audit, commit once.

    Any error rolls the whole transaction back (entity change, history and audit rows
    together), then an API_ERROR audit row is written separately.
    """

    cfg: Config = current_app.config["CFG"]
    action_u = str(action or "").upper().strip()
    auth_ctx = actor_from_headers()

    db = None
    try:
        db = SessionLocal()
        out = dispatch(action_u, data or {}, auth_ctx, db, cfg)

        if action_u not in READ_ACTIONS:
            _api_call_audit(db, action_u, auth_ctx, data)
        db.commit()
        flush_invalidations(db)
        return ok(out, http_status=http_status)
    except ApiError as e:
        if db is not None:
            db.rollback()
            discard_invalidations(db)
        write_error_audit(action_u, auth_ctx, data, e)
        if e.http_status >= 500:
            _log.error("request_id=%s action=%s code=%s %s", getattr(g, "request_id", ""), action_u, e.code, e.message)
        else:
            _log.warning("request_id=%s action=%s code=%s %s", getattr(g, "request_id", ""), action_u, e.code, e.message)
        return err(e.code, e.message, http_status=e.http_status, details=e.details)
    except StaleDataError as e:
        if db is not None:
            db.rollback()
            discard_invalidations(db)
        api_err = PersistenceError(
            "Record was modified concurrently; reload and retry",
            code="CONCURRENT_MODIFICATION",
            http_status=409,
        )
        write_error_audit(action_u, auth_ctx, data, api_err)
        _log.warning("request_id=%s action=%s stale data: %s", getattr(g, "request_id", ""), action_u, e)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    except DBAPIError as e:
        if db is not None:
            db.rollback()
            discard_invalidations(db)
        api_err = PersistenceError(_unexpected_message(cfg, "Database error", e))
        write_error_audit(action_u, auth_ctx, data, api_err)
        _log.exception("request_id=%s action=%s", getattr(g, "request_id", ""), action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    except Exception as e:
        if db is not None:
            db.rollback()
            discard_invalidations(db)
        api_err = ApiError("INTERNAL", _unexpected_message(cfg, "Unexpected error", e), http_status=500)
        write_error_audit(action_u, auth_ctx, data, api_err)
        _log.exception("request_id=%s action=%s", getattr(g, "request_id", ""), action_u)
        return err(api_err.code, api_err.message, http_status=api_err.http_status)
    finally:
        if db is not None:
            db.close()
