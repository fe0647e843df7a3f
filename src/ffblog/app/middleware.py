"""
WSGI and request middleware for the FF Blog app.
"""

import logging
import time
import uuid
from io import BytesIO
from urllib.parse import parse_qs

from flask import g, request

logger = logging.getLogger(__name__)

#: Methods an HTML form may ask for through the ``_method`` field.
OVERRIDABLE_METHODS = {"PUT", "PATCH", "DELETE"}


class MethodOverrideMiddleware:
    """Let HTML forms send PUT/PATCH/DELETE.

    A ``POST`` carrying ``_method`` (form field or query string) or an
    ``X-HTTP-Method-Override`` header is re-dispatched with that method.
    URL-encoded bodies are read and replaced so the app still sees them.
    """

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD", "").upper() == "POST":
            method = self._requested_method(environ)
            if method in OVERRIDABLE_METHODS:
                environ["REQUEST_METHOD"] = method
                environ["ffblog.original_method"] = "POST"
        return self.app(environ, start_response)

    @staticmethod
    def _requested_method(environ):
        header = environ.get("HTTP_X_HTTP_METHOD_OVERRIDE")
        if header:
            return header.upper()

        query = parse_qs(environ.get("QUERY_STRING", ""))
        if "_method" in query:
            return query["_method"][0].upper()

        content_type = environ.get("CONTENT_TYPE", "")
        if not content_type.startswith("application/x-www-form-urlencoded"):
            return None

        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        if length <= 0:
            # Unknown length (e.g. chunked): leave the stream for the app to read
            return None
        body = environ["wsgi.input"].read(length)
        # Put the body back so the app can parse the form as usual
        environ["wsgi.input"] = BytesIO(body)
        form = parse_qs(body.decode("latin-1"))
        if "_method" in form:
            return form["_method"][0].upper()
        return None


def start_timer():
    """``before_request`` hook: tag the request with an id and start time."""
    g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
    g.request_started = time.time()


def log_request(response):
    """``after_request`` hook: log slow or failed requests."""
    started = g.get("request_started")
    elapsed = time.time() - started if started else 0.0
    response.headers.setdefault("X-Request-ID", g.get("request_id", ""))
    if elapsed > 1.0 or response.status_code >= 400:
        logger.info(
            "[%s] %s %s - %s - %.2fs",
            g.get("request_id"),
            request.method,
            request.path,
            response.status_code,
            elapsed,
        )
    return response
