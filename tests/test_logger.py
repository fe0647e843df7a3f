"""
tests.test_logger
==================

Tests for file logging in :mod:`ffblog.logger`.

Checks the line format (timestamp, level, message, JSON context), that
channel names cannot escape the log directory, that channels write to
their own files, and the ``tail`` / ``clear`` helpers.
"""

import logging
import os
import re
from types import SimpleNamespace

import pytest

from ffblog import logger as log_channels

LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] (\w+): (.*)$")


@pytest.fixture
def log_dir(tmp_path):
    """Point the ``ffblog`` logger at ``tmp_path`` and return the directory."""
    fake_app = SimpleNamespace(config={"LOG_DIR": str(tmp_path), "LOG_LEVEL": "info", "LOG_CHANNEL": "app"})
    log_channels.configure_logging(fake_app)
    return tmp_path


def _lines(path):
    with open(path, encoding="utf-8") as f:
        return [line.rstrip("\n") for line in f if line.strip()]


# ============================================================
# CHANNEL NAMES
# ============================================================

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("security", "security"),
        ("../../etc/passwd", "etcpasswd"),
        ("mail.log", "maillog"),
        ("api_v2-audit", "api_v2-audit"),
    ],
)
def test_sanitize_channel(raw, expected):
    assert log_channels.sanitize_channel(raw) == expected


@pytest.mark.parametrize("raw", ["", "../..", None, "///"])
def test_sanitize_channel_rejects_empty_names(raw):
    with pytest.raises(ValueError):
        log_channels.sanitize_channel(raw)


def test_channel_path_stays_in_log_dir(tmp_path):
    path = log_channels.channel_path("../secrets", str(tmp_path))
    assert path == os.path.join(os.path.realpath(tmp_path), "secrets.log")


# ============================================================
# WRITING
# ============================================================

def test_records_are_written_with_json_context(log_dir):
    logging.getLogger("ffblog.tests").info("User logged in", extra={"context": {"user_id": 3}})
    logging.getLogger("ffblog.tests").debug("below the configured level")

    lines = _lines(log_dir / "app.log")

    assert len(lines) == 1
    level, message = LINE_RE.match(lines[0]).groups()
    assert level == "INFO"
    assert message == 'User logged in {"user_id": 3}'


def test_records_without_context_have_no_suffix(log_dir):
    logging.getLogger("ffblog.tests").warning("Disk almost full")

    assert _lines(log_dir / "app.log")[-1].endswith("WARNING: Disk almost full")


def test_channels_write_to_their_own_file(log_dir):
    log_channels.channel("security").warning("Failed login", extra={"context": {"ip": "10.0.0.1"}})

    assert "Failed login" in _lines(log_dir / "security.log")[0]
    assert not os.path.exists(log_dir / "app.log") or not _lines(log_dir / "app.log")


def test_configure_logging_replaces_previous_handler(tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    log_channels.configure_logging(SimpleNamespace(config={"LOG_DIR": str(first)}))
    log_channels.configure_logging(SimpleNamespace(config={"LOG_DIR": str(second)}))

    logging.getLogger("ffblog.tests").error("Only in the second file")

    assert _lines(second / "app.log")
    assert not _lines(first / "app.log")


# ============================================================
# TAIL / CLEAR
# ============================================================

def test_tail_returns_newest_first(log_dir):
    log = logging.getLogger("ffblog.tests")
    for number in range(5):
        log.info(f"entry {number}")

    entries = log_channels.tail("app", 2)

    assert entries[0].endswith("entry 4")
    assert entries[1].endswith("entry 3")
    assert log_channels.tail("app", 0) == []
    assert log_channels.tail("missing") == []


def test_clear_truncates(log_dir):
    logging.getLogger("ffblog.tests").info("to be removed")

    log_channels.clear("app")

    assert log_channels.tail("app") == []
