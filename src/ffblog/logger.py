"""
File logging for the FF Blog application.

Built on the standard :mod:`logging` package. Every module logs through
``logging.getLogger(__name__)``; :func:`configure_logging` attaches a
file handler to the ``ffblog`` package logger so those records land in
``LOG_DIR/app.log``. Additional named channels (``mail``, ``security``)
get their own files through :func:`channel`.

Each line looks like::

    [2026-01-31 12:00:00] INFO: User logged in {"user_id": 3}
"""

import json
import logging
import os
import re

from .paths import LOG_DIR

LINE_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s%(context_json)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CHANNEL_RE = re.compile(r"[^A-Za-z0-9_-]")

# Directory used by channel() / tail() / clear(); set by configure_logging()
_log_dir = LOG_DIR


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``record.context`` as compact JSON."""

    def __init__(self):
        super().__init__(LINE_FORMAT, DATE_FORMAT)

    def format(self, record):
        context = getattr(record, "context", None)
        record.context_json = " " + json.dumps(context, default=str) if context else ""
        return super().format(record)


def sanitize_channel(name):
    """Return a channel name safe to use as a file name.

    Only ``[A-Za-z0-9_-]`` survive, so separators, dots and traversal
    sequences are stripped.

    :param name: Requested channel name.
    :type name: str
    :returns: Sanitized channel name.
    :rtype: str
    :raises ValueError: If nothing usable remains.
    """
    cleaned = _CHANNEL_RE.sub("", str(name or ""))
    if not cleaned:
        raise ValueError(f"Invalid log channel: {name!r}")
    return cleaned


def channel_path(name, log_dir=None):
    """Absolute path of the log file for channel ``name``.

    :raises ValueError: If the resolved path would leave ``log_dir``.
    """
    base = os.path.realpath(log_dir or _log_dir)
    path = os.path.realpath(os.path.join(base, sanitize_channel(name) + ".log"))
    if os.path.dirname(path) != base:
        raise ValueError(f"Log channel escapes log directory: {name!r}")
    return path


def _file_handler(path, level):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(ContextFormatter())
    handler.ff_path = path
    return handler


def _replace_handler(target, handler):
    for existing in list(target.handlers):
        if hasattr(existing, "ff_path"):
            target.removeHandler(existing)
            existing.close()
    target.addHandler(handler)


def configure_logging(app):
    """Attach the application log file to the ``ffblog`` logger.

    Reads ``LOG_DIR``, ``LOG_LEVEL`` and ``LOG_CHANNEL`` from ``app.config``.
    Safe to call more than once; earlier file handlers are replaced.
    """
    global _log_dir
    _log_dir = app.config.get("LOG_DIR") or LOG_DIR
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "DEBUG")).upper())
    if not isinstance(level, int):
        level = logging.DEBUG

    package_logger = logging.getLogger("ffblog")
    package_logger.setLevel(level)
    path = channel_path(app.config.get("LOG_CHANNEL", "app"))
    _replace_handler(package_logger, _file_handler(path, level))
    return package_logger


def channel(name):
    """Return a logger writing to ``LOG_DIR/<name>.log``.

    Channel loggers do not propagate, so their records stay in their own file.
    """
    name = sanitize_channel(name)
    log = logging.getLogger(f"ffblog.channel.{name}")
    path = channel_path(name)
    current = [h for h in log.handlers if getattr(h, "ff_path", None) == path]
    if not current:
        _replace_handler(log, _file_handler(path, logging.DEBUG))
    log.setLevel(logging.DEBUG)
    log.propagate = False
    return log


def tail(name="app", lines=20):
    """Return up to ``lines`` most recent non-empty entries, newest first."""
    path = channel_path(name)
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        entries = [line.rstrip("\n") for line in f if line.strip()]
    return list(reversed(entries[-lines:])) if lines > 0 else []


def clear(name="app"):
    """Truncate the log file for channel ``name``."""
    path = channel_path(name)
    if os.path.exists(path):
        with open(path, "w", encoding="utf-8"):
            pass
