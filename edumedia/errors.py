# errors.py
"""
Error taxonomy and the JSON error envelope.

Handlers raise one of the ``ApiError`` subclasses below; the handlers
registered by ``register_error_handlers`` turn them into
``{"success": false, "message": ...}`` responses. Server-side failures also
carry the underlying message under ``"error"`` for diagnostics.
"""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger("edumedia.errors")


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None, error: str = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.error = error

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class ValidationError(ApiError):
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class InvalidTokenError(ApiError):
    status_code = 403


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class NotFoundOrForbidden(NotFoundError):
    """The post does not exist or belongs to someone else. Deliberately one case."""


class ConflictError(ApiError):
    status_code = 409


class EmptyUndoStack(ApiError):
    status_code = 400

    def __init__(self, message: str = "No actions to undo"):
        super().__init__(message)


class UnknownActionTag(ApiError):
    status_code = 400

    def __init__(self, message: str = "Unknown action type"):
        super().__init__(message)


class StoreError(ApiError):
    """A database call failed. ``error`` holds the driver's message."""

    status_code = 500

    def __init__(self, message: str, error: str = None):
        super().__init__(message, error=error)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", e.message, e.error)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        messages = {
            400: "Bad request",
            404: "Endpoint not found",
            405: "Method not allowed",
            413: "Request body is too large",
        }
        message = messages.get(e.code, e.name)
        return jsonify({"success": False, "message": message}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error")
        return jsonify({"success": False, "message": "Internal server error", "error": str(e)}), 500
