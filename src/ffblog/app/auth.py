"""
Registration, email verification, login/logout and password resets.

Login and registration are limited to 5 attempts per 15 minutes per
client IP; password-reset requests to 3 per hour.
"""

import logging

from flask import Blueprint, flash, redirect, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from .. import logger as log_channels
from ..events import UserRegistered
from ..extensions import get_events, get_limiter, get_mailer
from ..models import User
from ..security import client_ip, safe_redirect
from ..validation import Validator
from ..views import render
from .helpers import form_input

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

LOGIN_MAX_ATTEMPTS = 5
LOGIN_DECAY = 15 * 60
REGISTER_MAX_ATTEMPTS = 5
REGISTER_DECAY = 15 * 60
FORGOT_MAX_ATTEMPTS = 3
FORGOT_DECAY = 60 * 60

REGISTER_RULES = {
    "name": "required|min:2|max:100",
    "email": "required|email|max:255|unique:users,email",
    "password": "required|min:8|confirmed",
}
LOGIN_RULES = {"email": "required|email", "password": "required"}
FORGOT_RULES = {"email": "required|email"}
RESET_RULES = {"password": "required|min:8|confirmed"}


def _throttled(key, max_attempts, template, **context):
    """Render ``template`` with a 429 if ``key`` is over its limit, else ``None``."""
    limiter = get_limiter()
    if not limiter.too_many_attempts(key, max_attempts):
        return None
    minutes = max(1, -(-limiter.available_in(key) // 60))
    log_channels.channel("security").warning(
        "Rate limit exceeded", extra={"context": {"key": key, "ip": client_ip()}}
    )
    flash(f"Too many attempts. Please try again in {minutes} minute(s).", "error")
    return render(template, errors={}, old={}, **context), 429


def _redirect_authenticated():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))
    return None


# -------------------------------
# REGISTRATION
# -------------------------------
@bp.route("/register", methods=["GET", "POST"])
def register():
    """Show the registration form or create an unverified account."""
    early = _redirect_authenticated()
    if early:
        return early
    if request.method == "GET":
        return render("auth.register", title="Register", errors={}, old={})

    key = f"register:{client_ip()}"
    throttled = _throttled(key, REGISTER_MAX_ATTEMPTS, "auth.register", title="Register")
    if throttled:
        return throttled
    get_limiter().hit(key, REGISTER_DECAY)

    data = form_input("name", "email", "password", "password_confirmation")
    data["email"] = data["email"].lower()
    validator = Validator(data, REGISTER_RULES)
    if not validator.validate():
        old = {"name": data["name"], "email": data["email"]}
        return render("auth.register", title="Register", errors=validator.errors, old=old), 422

    user = User(name=data["name"], email=data["email"])
    user.set_password(data["password"])
    token = user.create_verification_token()
    user.save()

    get_mailer().send_verification_email(user, token)
    get_events().dispatch(UserRegistered(user))

    flash("Registration successful! Please check your email to verify your account.", "success")
    return redirect(url_for("auth.login"))


@bp.route("/verify-email/<token>")
def verify_email(token):
    """Mark the account owning ``token`` as verified."""
    user = User.find_by_verification_token(token)
    if user is None:
        flash("Invalid or expired verification link.", "error")
        return redirect(url_for("auth.login"))

    user.mark_email_as_verified()
    get_mailer().send_welcome_email(user)
    log_channels.channel("security").info("Email verified", extra={"context": {"user_id": user.id}})
    flash("Email verified! You can now login.", "success")
    return redirect(url_for("auth.login"))


# -------------------------------
# LOGIN / LOGOUT
# -------------------------------
@bp.route("/login", methods=["GET", "POST"])
def login():
    """Show the login form or sign the user in."""
    early = _redirect_authenticated()
    if early:
        return early
    if request.method == "GET":
        return render("auth.login", title="Login", errors={}, old={}, next=request.args.get("next", ""))

    next_url = request.form.get("next") or request.args.get("next") or ""
    key = f"login:{client_ip()}"
    throttled = _throttled(key, LOGIN_MAX_ATTEMPTS, "auth.login", title="Login", next=next_url)
    if throttled:
        return throttled

    data = form_input("email", "password")
    validator = Validator(data, LOGIN_RULES)
    if not validator.validate():
        return render(
            "auth.login", title="Login", errors=validator.errors, old={"email": data["email"]}, next=next_url
        ), 422

    user = User.find_by_email(data["email"])
    if user is None or not user.check_password(data["password"]):
        get_limiter().hit(key, LOGIN_DECAY)
        log_channels.channel("security").warning(
            "Failed login", extra={"context": {"email": data["email"], "ip": client_ip()}}
        )
        flash("Invalid email or password.", "error")
        return render(
            "auth.login", title="Login", errors={}, old={"email": data["email"]}, next=next_url
        ), 401

    if not user.is_email_verified():
        flash("Please verify your email address before logging in.", "error")
        return redirect(url_for("auth.login"))

    get_limiter().reset(key)
    login_user(user, remember=bool(request.form.get("remember")))
    log_channels.channel("security").info("User logged in", extra={"context": {"user_id": user.id}})
    flash(f"Welcome back, {user.name}!", "success")
    return safe_redirect(next_url, url_for("dashboard.index"))


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Sign the current user out."""
    user_id = current_user.id
    logout_user()
    log_channels.channel("security").info("User logged out", extra={"context": {"user_id": user_id}})
    flash("You have been logged out.", "success")
    return redirect(url_for("blog.home"))


# -------------------------------
# PASSWORD RESET
# -------------------------------
@bp.route("/forgot-password", methods=["GET", "POST"])
def forgot_password():
    """Email a reset link; the response never reveals whether the email exists."""
    if request.method == "GET":
        return render("auth.forgot_password", title="Forgot Password", errors={}, old={})

    key = f"forgot:{client_ip()}"
    throttled = _throttled(key, FORGOT_MAX_ATTEMPTS, "auth.forgot_password", title="Forgot Password")
    if throttled:
        return throttled
    get_limiter().hit(key, FORGOT_DECAY)

    data = form_input("email")
    validator = Validator(data, FORGOT_RULES)
    if not validator.validate():
        return render(
            "auth.forgot_password", title="Forgot Password", errors=validator.errors, old=data
        ), 422

    user = User.find_by_email(data["email"])
    if user is not None:
        token = user.generate_password_reset_token()
        get_mailer().send_password_reset_email(user, token)
        log_channels.channel("security").info(
            "Password reset requested", extra={"context": {"user_id": user.id}}
        )

    flash("If that email exists, a password reset link has been sent.", "success")
    return redirect(url_for("auth.login"))


@bp.route("/reset-password/<token>", methods=["GET", "POST"])
def reset_password(token):
    """Set a new password using a valid, unexpired reset token."""
    user = User.find_by_reset_token(token)
    if user is None or not user.is_valid_password_reset_token(token):
        flash("Invalid or expired password reset link.", "error")
        return redirect(url_for("auth.forgot_password"))

    if request.method == "GET":
        return render("auth.reset_password", title="Reset Password", token=token, errors={})

    data = form_input("password", "password_confirmation")
    validator = Validator(data, RESET_RULES)
    if not validator.validate():
        return render(
            "auth.reset_password", title="Reset Password", token=token, errors=validator.errors
        ), 422

    user.set_password(data["password"])
    user.clear_password_reset_token()
    log_channels.channel("security").info("Password reset", extra={"context": {"user_id": user.id}})
    flash("Your password has been reset. You can now login.", "success")
    return redirect(url_for("auth.login"))
