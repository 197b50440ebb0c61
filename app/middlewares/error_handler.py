from __future__ import annotations

import logging

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from utils import ApiError, err


def init_error_handlers(app: Flask) -> None:
    """Keep the JSON envelope for errors raised outside the action layer."""

    @app.errorhandler(ApiError)
    def api_error(e: ApiError):
        return err(e.code, e.message, http_status=e.http_status, details=e.details)

    @app.errorhandler(404)
    def not_found(_e):
        return err("NOT_FOUND", f"Unknown endpoint: {request.method} {request.path}", http_status=404)

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return err("METHOD_NOT_ALLOWED", f"Method {request.method} not allowed for {request.path}", http_status=405)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        code = int(e.code or 500)
        return err(str(e.name or "HTTP_ERROR").upper().replace(" ", "_"), str(e.description or e.name), http_status=code)

    @app.errorhandler(Exception)
    def unexpected(_e):
        logging.getLogger("api").exception("unhandled error path=%s", request.path)
        return err("INTERNAL", "Unexpected error", http_status=500)
