from flask import request

from .letter_service import LetterNotAvailable
from .workflow.errors import WorkflowError


def _error(code, message, status, retryable=False):
    return {"error": code, "message": message, "retryable": retryable}, status


def register_error_handlers(app):
    @app.errorhandler(WorkflowError)
    def workflow_error(e):
        if e.http_status >= 500:
            app.logger.warning("%s on %s: %s", e.code, request.path, e.message)
        return e.to_dict(), e.http_status

    @app.errorhandler(LetterNotAvailable)
    def letter_not_available(e):
        return _error("letter_not_available", str(e), 409)

    @app.errorhandler(400)
    def bad_request(e):
        return _error("bad_request", getattr(e, "description", "Bad request."), 400)

    @app.errorhandler(401)
    def unauthorized(e):
        return _error("unauthorized", "Please sign in.", 401)

    @app.errorhandler(403)
    def forbidden(e):
        app.logger.warning("403 Forbidden: %s", request.path)
        return _error("forbidden", "You do not have access to this resource.", 403)

    @app.errorhandler(404)
    def not_found(e):
        return _error("not_found", "Resource not found.", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _error("method_not_allowed", "Method not allowed.", 405)

    @app.errorhandler(413)
    def too_large(e):
        return _error("payload_too_large", "Upload exceeds the size limit.", 413)

    @app.errorhandler(429)
    def rate_limited(e):
        return _error("rate_limited", "Too many requests. Please slow down.", 429, retryable=True)

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Internal server error: %s", e)
        return _error("internal_error", "An unexpected error occurred.", 500, retryable=True)
