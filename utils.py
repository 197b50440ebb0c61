from __future__ import annotations

import json
import re
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from flask import jsonify
from zoneinfo import ZoneInfo


class ApiError(Exception):
    """Error surfaced to the HTTP layer as `{"ok": false, "error": {...}}`."""

    http_status = 400

    def __init__(self, code: str, message: str, *, http_status: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        if http_status is not None:
            self.http_status = int(http_status)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(ApiError):
    """Malformed or missing input. Raised before any write."""

    http_status = 400

    def __init__(self, message: str = "Validation failed", *, details: Optional[list[dict[str, str]]] = None):
        super().__init__("VALIDATION_ERROR", message, details=list(details or []))


class NotFoundError(ApiError):
    http_status = 404

    def __init__(self, message: str):
        super().__init__("NOT_FOUND", message)


class InvalidTransitionError(ApiError):
    """Legal input, illegal state transition."""

    http_status = 409

    def __init__(self, message: str, *, from_state: str = "", to_state: str = ""):
        details = {"from": from_state, "to": to_state} if (from_state or to_state) else None
        super().__init__("INVALID_TRANSITION", message, details=details)


class TerminalStateError(ApiError):
    http_status = 409

    def __init__(self, message: str, *, state: str = ""):
        super().__init__("TERMINAL_STATE", message, details={"state": state} if state else None)


class PersistenceError(ApiError):
    """Transactional write failure. Never retried inside the core."""

    http_status = 500

    def __init__(self, message: str, *, code: str = "PERSISTENCE_ERROR", http_status: int = 500):
        super().__init__(code, message, http_status=http_status)


@dataclass(frozen=True)
class AuthContext:
    """Caller identity forwarded by the gateway; the core only uses it for attribution."""

    valid: bool
    userId: str
    role: str = ""
    email: str = ""


SYSTEM_ACTOR = AuthContext(valid=True, userId="SYSTEM", role="SYSTEM", email="SYSTEM")


def ok(data: Any = None, *, http_status: int = 200):
    return jsonify({"ok": True, "data": data}), http_status


def err(code: str, message: str, *, http_status: int = 400, details: Any = None):
    body: dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    return jsonify({"ok": False, "error": body}), http_status


def iso_utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso_utc(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_datetime_maybe(value: Any, *, app_timezone: str = "UTC") -> Optional[datetime]:
    """Parse ISO date / datetime strings. Naive values are read in `app_timezone`."""

    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        s = str(value or "").strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None

    if dt.tzinfo is None:
        try:
            tz = ZoneInfo(app_timezone)
        except Exception:
            tz = timezone.utc
        dt = dt.replace(tzinfo=tz)
    return dt


def new_uuid() -> str:
    return str(uuid.uuid4())


_UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def is_uuid(value: Any) -> bool:
    return bool(_UUID_RE.fullmatch(str(value or "").strip()))


def now_monotonic() -> float:
    return time.monotonic()


def safe_json_string(value: Any, fallback: str = "") -> str:
    try:
        return json.dumps(value, default=str)
    except Exception:
        return fallback


_REDACT_KEYS = {"email", "phone", "salary", "password", "token"}


def redact_for_audit(data: Any) -> Any:
    if isinstance(data, dict):
        out = {}
        for k, v in data.items():
            if str(k).lower() in _REDACT_KEYS:
                out[k] = "***" if v not in (None, "") else v
            else:
                out[k] = redact_for_audit(v)
        return out
    if isinstance(data, list):
        return [redact_for_audit(x) for x in data]
    return data
