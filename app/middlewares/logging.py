from __future__ import annotations

import logging

from flask import Flask, g, request

from utils import now_monotonic

_log = logging.getLogger("api")


def init_request_logging(app: Flask) -> None:
    @app.after_request
    def _log_request(resp):
        if request.path in {"/health", "/ready"}:
            return resp
        started = getattr(g, "start_ts", None)
        latency_ms = int((now_monotonic() - started) * 1000) if started is not None else -1
        _log.info(
            "request_id=%s method=%s path=%s status=%s latency_ms=%s",
            getattr(g, "request_id", ""),
            request.method,
            request.path,
            resp.status_code,
            latency_ms,
        )
        return resp
