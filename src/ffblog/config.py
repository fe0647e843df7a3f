"""
Configuration for the FF Blog application.

Values are read from environment variables (optionally loaded from a
``.env`` file with python-dotenv) and exposed as class attributes so the
Flask app can load them with ``app.config.from_object``.
"""

import os

from dotenv import load_dotenv

from .paths import BASE_DIR, CACHE_DIR, LOG_DIR, MIGRATIONS_DIR

# Never override variables that are already set in the real environment
load_dotenv(override=False)


def _env_bool(name, default=False):
    """Read a boolean flag from the environment.

    :param name: Environment variable name.
    :type name: str
    :param default: Value used when the variable is unset or unrecognized.
    :type default: bool
    :returns: Parsed boolean.
    :rtype: bool
    """
    value = os.environ.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name, default):
    """Read an integer from the environment, falling back on bad input."""
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Default configuration, populated from the environment."""

    APP_NAME = os.environ.get("APP_NAME", "FF Blog")
    APP_URL = os.environ.get("APP_URL", "http://localhost:5000")

    # Secret key used by Flask for session signing and by Flask-WTF for CSRF
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    WTF_CSRF_ENABLED = _env_bool("WTF_CSRF_ENABLED", True)

    # Session cookie hardening
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", False)
    FORCE_HTTPS = _env_bool("FORCE_HTTPS", False)

    # Database connection (psycopg)
    DB_NAME = os.environ.get("DB_NAME", "ff_blog")
    DB_USER = os.environ.get("DB_USER", "postgres")
    DB_PASSWORD = os.environ.get("DB_PASSWORD", "")
    DB_HOST = os.environ.get("DB_HOST", "127.0.0.1")
    DB_PORT = os.environ.get("DB_PORT", "5432")

    # Cache
    CACHE_DRIVER = os.environ.get("CACHE_DRIVER", "file")
    CACHE_DIR = os.environ.get("CACHE_DIR", CACHE_DIR)
    CACHE_TTL = _env_int("CACHE_TTL", 300)

    # Logging
    LOG_DIR = os.environ.get("LOG_DIR", LOG_DIR)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    LOG_CHANNEL = os.environ.get("LOG_CHANNEL", "app")

    # Blog
    POSTS_PER_PAGE = _env_int("POSTS_PER_PAGE", 10)
    ADMIN_PER_PAGE = _env_int("ADMIN_PER_PAGE", 20)

    # JSON API
    API_TOKEN = os.environ.get("API_TOKEN", "")

    # Outgoing mail; an empty MAIL_HOST means "log instead of send"
    MAIL_HOST = os.environ.get("MAIL_HOST", "")
    MAIL_PORT = _env_int("MAIL_PORT", 25)
    MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@ffblog.local")

    # CLI: migration files and the directory make:* commands write into
    MIGRATIONS_DIR = os.environ.get("MIGRATIONS_DIR", MIGRATIONS_DIR)
    GENERATOR_BASE_DIR = os.environ.get("GENERATOR_BASE_DIR", BASE_DIR)


class TestingConfig(Config):
    """Configuration used by the test-suite."""

    TESTING = True
    DEBUG = False
    SECRET_KEY = "dev"
    WTF_CSRF_ENABLED = False
    CACHE_DRIVER = "array"
    API_TOKEN = "test-token"
    LOG_LEVEL = "DEBUG"


def load_config(overrides=None, base=Config):
    """Build a plain configuration dict from a config class plus overrides.

    :param overrides: Extra keys applied after the class defaults.
    :type overrides: dict or None
    :param base: Configuration class to read uppercase attributes from.
    :type base: type
    :returns: Merged configuration mapping.
    :rtype: dict
    """
    values = {key: getattr(base, key) for key in dir(base) if key.isupper()}
    if overrides:
        values.update(overrides)
    return values
