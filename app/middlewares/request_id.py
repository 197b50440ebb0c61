from __future__ import annotations

import os
import re

from flask import Flask, g, request

from utils import now_monotonic

_INBOUND_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def init_request_id(app: Flask) -> None:
    """Attach a request id (inbound X-Request-ID when well formed) and echo it back."""

    @app.before_request
    def _assign_request_id():
        inbound = str(request.headers.get("X-Request-ID") or "").strip()
        g.request_id = inbound if _INBOUND_ID_RE.fullmatch(inbound) else os.urandom(8).hex()
        g.start_ts = now_monotonic()

    @app.after_request
    def _echo_request_id(resp):
        resp.headers["X-Request-ID"] = str(getattr(g, "request_id", "") or "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Cache-Control", "no-store")
        return resp
