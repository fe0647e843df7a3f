"""
Flask extension instances and per-app services.

Extensions are created here without an app so ``create_app()`` can call
``init_app()`` on each. The cache, event dispatcher, rate limiter and
mailer are built per app in :func:`init_services` and reached through
the accessor functions below.
"""

from flask import current_app
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

from .cache import Cache
from .events import EventDispatcher, register_listeners
from .mail import Mailer
from .security import RateLimiter

# CSRF protection for form submissions
csrf = CSRFProtect()

# Session-based authentication
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please login to continue."
login_manager.login_message_category = "error"


@login_manager.user_loader
def load_user(user_id):
    # Imported lazily so models are not loaded before the app is configured
    from .models import User

    try:
        return User.find(int(user_id))
    except (TypeError, ValueError):
        return None


def init_services(app):
    """Build the cache, dispatcher, limiter and mailer for ``app``."""
    cache = Cache(app.config.get("CACHE_DRIVER", "array"), app.config.get("CACHE_DIR"))
    dispatcher = register_listeners(EventDispatcher(), cache)
    app.extensions["ffblog"] = {
        "cache": cache,
        "events": dispatcher,
        "limiter": RateLimiter(cache),
        "mailer": Mailer(),
    }


def _service(name):
    return current_app.extensions["ffblog"][name]


def get_cache():
    return _service("cache")


def get_events():
    return _service("events")


def get_limiter():
    return _service("limiter")


def get_mailer():
    return _service("mailer")
