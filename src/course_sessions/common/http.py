"""JSON envelope, caller resolution and error mapping shared by controllers."""

from __future__ import annotations

import logging
import uuid
from functools import wraps
from typing import Any, Optional

from flask import Flask, current_app, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ConflictError, DomainError, NotFoundError, ValidationError
from ..users.model import CallerContext
from .app_logging import clear_request_context, merge_request_context

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def ok(data: Any = None, status: int = 200, message: Optional[str] = None):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(message: str, status: int, errors: Optional[list] = None):
    return jsonify({"success": False, "message": message, "errors": errors or []}), status


def status_for(error: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 400


def current_caller() -> CallerContext:
    return g.caller


def caller_required(view):
    """Resolve the caller from the session set by the authentication layer."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        role = session.get("role")
        if user_id is None or role is None:
            return fail("Authentication required", 401)
        try:
            g.caller = CallerContext(user_id=int(user_id), role=Role(role))
        except (TypeError, ValueError):
            return fail("Authentication required", 401)

        merge_request_context(user_id=g.caller.user_id, role=g.caller.role.value)
        return view(*args, **kwargs)

    return wrapper


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_error_handlers(app: Flask) -> None:
    @app.before_request
    def _bind_request_context():
        clear_request_context()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_id = request_id
        merge_request_context(request_id=request_id, method=request.method, path=request.path)

    @app.after_request
    def _echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        status = status_for(e)
        logger.info("Request rejected (%s): %s", status, e)
        return fail(str(e), status)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        message = str(e) if current_app.config.get("DEBUG") else "Internal server error"
        return fail(message, 500)
