"""Error taxonomy and the boundary translator that renders every failure."""
from __future__ import annotations

import traceback

from flask import Flask, current_app, jsonify
from itsdangerous import BadSignature, SignatureExpired
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    """An error that maps directly onto an HTTP response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: list[dict[str, str]] | None = None,
                 status_code: int | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(errors=[{"field": field, "message": message}])


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Not authorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = 400
    default_message = "Duplicate value entered"


class InvalidTransition(ApiError):
    status_code = 400

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot change booking status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


def pydantic_errors(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic error into ``[{field, message}]`` entries."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def error_body(message: str, errors: list[dict[str, str]] | None = None, exc: BaseException | None = None):
    body: dict[str, object] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if exc is not None and current_app.config.get("PROPAGATE_STACK") and current_app.config.get("ENV") != "production":
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        if exc.status_code >= 500:
            current_app.logger.error("Request failed: %s", exc.message)
        return jsonify(error_body(exc.message, exc.errors)), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_pydantic_error(exc: ValidationError):
        errors = pydantic_errors(exc)
        current_app.logger.warning("Rejected request payload: %s", errors)
        return jsonify(error_body("Validation failed", errors)), 400

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        db.session.rollback()
        current_app.logger.warning("Integrity violation: %s", exc.orig)
        return jsonify(error_body("Duplicate value entered")), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Database operation failed", exc_info=exc)
        return jsonify(error_body("Database error", exc=exc)), 500

    @app.errorhandler(SignatureExpired)
    def handle_expired_token(exc: SignatureExpired):
        return jsonify(error_body("Token expired")), 401

    @app.errorhandler(BadSignature)
    def handle_bad_token(exc: BadSignature):
        return jsonify(error_body("Invalid token")), 401

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(error_body(exc.description or exc.name)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error", exc_info=exc)
        return jsonify(error_body("Internal server error", exc=exc)), 500
