"""
Security helpers: password and token hashing, safe redirects, rate
limiting, access-control decorators and response headers.
"""

import hashlib
import hmac
import logging
import secrets
import time
from functools import wraps
from urllib.parse import urljoin, urlparse

from flask import current_app, flash, jsonify, redirect, request, url_for
from flask_login import current_user
from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-XSS-Protection": "1; mode=block",
}


def hash_password(plain):
    return generate_password_hash(plain)


def verify_password(plain, hashed):
    if not plain or not hashed:
        return False
    return check_password_hash(hashed, plain)


def generate_token():
    """Return a random 64-character hex token."""
    return secrets.token_hex(32)


def hash_token(token):
    """Return the SHA-256 hex digest stored in place of a plain token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# -------------------------------
# REDIRECT VALIDATION
# -------------------------------
def is_safe_redirect_url(target, host_url):
    """Return ``True`` if ``target`` stays on the host described by ``host_url``.

    Relative paths are accepted. Absolute URLs must use http(s) and match
    the host exactly. Protocol-relative URLs (``//evil``), backslash
    variants that browsers normalize to ``//``, and any control
    characters are rejected.

    :param target: Redirect destination taken from user input.
    :type target: str or None
    :param host_url: Base URL of the current request (``request.host_url``).
    :type host_url: str
    :rtype: bool
    """
    if not target or not isinstance(target, str):
        return False
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in target):
        return False

    candidate = target.strip().replace("\\", "/")
    if candidate.startswith("//") or candidate.startswith("/\\"):
        return False

    host = urlparse(host_url)
    resolved = urlparse(urljoin(host_url, candidate))
    return resolved.scheme in ("http", "https") and resolved.netloc == host.netloc


def safe_redirect(target, fallback="/"):
    """Redirect to ``target`` if it is safe, otherwise to ``fallback``."""
    if is_safe_redirect_url(target, request.host_url):
        return redirect(target)
    if target:
        logger.warning("Rejected unsafe redirect", extra={"context": {"target": target[:200]}})
    return redirect(fallback)


# -------------------------------
# RATE LIMITING
# -------------------------------
class RateLimiter:
    """Count attempts per key in the cache with a decay window.

    :param cache: Cache used to hold counters.
    :type cache: ffblog.cache.Cache
    """

    PREFIX = "rate_limit:"

    def __init__(self, cache):
        self.cache = cache

    def _key(self, key):
        return f"{self.PREFIX}{key}"

    def attempts(self, key):
        try:
            return int(self.cache.get(self._key(key), 0) or 0)
        except (TypeError, ValueError):
            return 0

    def too_many_attempts(self, key, max_attempts):
        return self.attempts(key) >= max_attempts

    def hit(self, key, decay_seconds=60):
        """Record one attempt; the window starts at the first attempt."""
        timer_key = self._key(key) + ":timer"
        if not self.cache.has(timer_key):
            self.cache.put(timer_key, time.time() + decay_seconds, decay_seconds)
            self.cache.put(self._key(key), 0, decay_seconds)
        expires_at = float(self.cache.get(timer_key, time.time() + decay_seconds))
        remaining = max(1, int(expires_at - time.time()))
        return self.cache.increment(self._key(key), 1, remaining)

    def remaining(self, key, max_attempts):
        return max(0, max_attempts - self.attempts(key))

    def available_in(self, key):
        """Seconds until the window for ``key`` resets (0 if none is open)."""
        expires_at = self.cache.get(self._key(key) + ":timer")
        if expires_at is None:
            return 0
        return max(0, int(float(expires_at) - time.time()))

    def reset(self, key):
        self.cache.forget(self._key(key))
        self.cache.forget(self._key(key) + ":timer")


def client_ip():
    return request.remote_addr or "unknown"


# -------------------------------
# DECORATORS
# -------------------------------
def admin_required(view):
    """Allow only logged-in administrators.

    Anonymous users are sent to the login page; logged-in non-admins are
    sent to their dashboard with an error message.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            flash("Please login to access admin panel", "error")
            return redirect(url_for("auth.login", next=request.path))
        if not current_user.is_admin:
            logger.warning(
                "Non-admin tried to open admin page",
                extra={"context": {"user_id": current_user.id, "path": request.path}},
            )
            flash("Access denied. Admin privileges required.", "error")
            return redirect(url_for("dashboard.index"))
        return view(*args, **kwargs)

    return wrapped


def api_key_required(view):
    """Require an ``X-API-Key`` header equal to ``API_TOKEN``."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        expected = current_app.config.get("API_TOKEN") or ""
        provided = (request.headers.get("X-API-Key") or "").strip()
        if not expected or not provided or not hmac.compare_digest(expected, provided):
            return jsonify({"error": "Unauthorized", "message": "Missing or invalid API key."}), 401
        return view(*args, **kwargs)

    return wrapped


def apply_security_headers(response):
    """``after_request`` hook adding the default security headers."""
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    if current_app.config.get("FORCE_HTTPS"):
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response
