"""
Error handlers: HTML pages for the site, JSON bodies under ``/api``.
"""

import logging

from flask import flash, jsonify, render_template, request
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException

from ..exceptions import ModelNotFoundError
from ..security import safe_redirect

logger = logging.getLogger(__name__)


def _wants_json():
    return request.path.startswith("/api/") or request.path == "/api"


def not_found(error):
    if _wants_json():
        return jsonify({"error": "Not Found", "message": "The requested resource was not found."}), 404
    return render_template("errors/404.html", title="Page Not Found"), 404


def csrf_failed(error):
    logger.warning("CSRF token mismatch", extra={"context": {"path": request.path, "reason": error.description}})
    flash("Your session expired. Please try again.", "error")
    return safe_redirect(request.referrer, request.path)


def http_error(error):
    """Any other HTTP error raised with :func:`flask.abort`."""
    if _wants_json():
        return jsonify({"error": error.name, "message": error.description}), error.code
    return error


def server_error(error):
    """Log unhandled exceptions with their traceback and show the 500 page."""
    original = getattr(error, "original_exception", None) or error
    logger.error(
        "Unhandled exception",
        exc_info=(type(original), original, original.__traceback__),
        extra={"context": {"path": request.path, "method": request.method}},
    )
    if _wants_json():
        return jsonify({"error": "Server Error", "message": "An unexpected error occurred."}), 500
    return render_template("errors/500.html", title="Server Error"), 500


def register_error_handlers(app):
    app.register_error_handler(404, not_found)
    app.register_error_handler(ModelNotFoundError, not_found)
    app.register_error_handler(CSRFError, csrf_failed)
    app.register_error_handler(HTTPException, http_error)
    app.register_error_handler(500, server_error)
