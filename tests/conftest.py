# tests/conftest.py
"""
Shared fixtures for the FF Blog test-suite.

Everything runs offline: :class:`FakeConnection` stands in for a psycopg
connection and answers queries from rules keyed by SQL fragments, the
cache uses the in-memory ``array`` driver, and logs go to ``tmp_path``.
"""

import itertools
import re
from datetime import datetime

import pytest

from ffblog import cache, db, views
from ffblog.app import create_app
from ffblog.config import TestingConfig, load_config

_INSERT_RE = re.compile(r"^INSERT INTO (\w+) \(([^)]*)\) VALUES")


# ------------------------------
# Markers for pytest
# ------------------------------
def pytest_configure(config):
    config.addinivalue_line("markers", "web: Flask route/page tests")
    config.addinivalue_line("markers", "auth: registration, login and password resets")
    config.addinivalue_line("markers", "admin: admin panel and author dashboard")
    config.addinivalue_line("markers", "api: JSON API endpoints")
    config.addinivalue_line("markers", "db: query builder, models and migrations")
    config.addinivalue_line("markers", "cache: cache drivers and rate limiting")
    config.addinivalue_line("markers", "events: event dispatcher and listeners")
    config.addinivalue_line("markers", "validation: rule-string validation")
    config.addinivalue_line("markers", "security: redirects, headers and access control")
    config.addinivalue_line("markers", "cli: flask commands and file generators")


# ============================================================
# FAKE DATABASE INFRASTRUCTURE
# ============================================================

def normalize_sql(query):
    """Render a psycopg ``Composable`` (or string) as comparable text.

    Identifier quotes are dropped and whitespace is collapsed, so rules can
    be written as ``"FROM posts WHERE slug = %s"``.
    """
    text = query.as_string(None) if hasattr(query, "as_string") else str(query)
    return " ".join(text.replace('"', "").split())


class FakeCursor:
    """Fake psycopg3 cursor routing each statement through its connection.

    Implements the context manager protocol so it can be used in
    ``with conn.cursor() as cur:`` blocks.
    """

    def __init__(self, connection):
        self.connection = connection
        self.rowcount = -1
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        text = normalize_sql(query)
        params = tuple(params or ())
        self.connection.executed_queries.append((text, params))
        result = self.connection.respond(text, params)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, int):
            self._rows = []
            self.rowcount = result
        else:
            self._rows = list(result or [])
            self.rowcount = len(self._rows)

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None


class FakeConnection:
    """Fake psycopg3 connection answering queries from registered rules.

    A rule maps a SQL fragment to a result: a list of row dicts, an int
    (row count for ``UPDATE``/``DELETE``), an exception instance to raise,
    or a callable ``(params) -> result``. Later rules win over earlier
    ones. Without a matching rule:

    - ``INSERT ... RETURNING *`` echoes the inserted columns plus a new ``id``;
    - ``COUNT(*)`` queries return ``0``;
    - ``UPDATE``/``DELETE`` report one affected row;
    - anything else returns no rows.
    """

    def __init__(self):
        self.executed_queries = []
        self.inserted = []
        self.rules = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.autocommit = False
        self._ids = itertools.count(100)

    def on(self, fragment, result):
        self.rules.append((fragment, result))
        return self

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    def respond(self, text, params):
        for fragment, result in reversed(self.rules):
            if fragment in text:
                return result(params) if callable(result) else result

        match = _INSERT_RE.match(text)
        if match:
            columns = [c.strip() for c in match.group(2).split(",")]
            row = dict(zip(columns, params))
            row["id"] = next(self._ids)
            self.inserted.append((match.group(1), row))
            return [row]
        if "COUNT(*)" in text:
            return [{"aggregate": 0}]
        if text.startswith(("UPDATE", "DELETE")):
            return 1
        return []

    def queries(self, fragment):
        """Executed ``(sql, params)`` pairs whose SQL contains ``fragment``."""
        return [(text, params) for text, params in self.executed_queries if fragment in text]

    def inserted_into(self, table):
        return [row for name, row in self.inserted if name == table]


# ============================================================
# ROW FACTORIES
# ============================================================

def user_row(**overrides):
    """A ``users`` row for a verified, non-admin account (password: ``password123``)."""
    from ffblog.security import hash_password

    row = {
        "id": 1,
        "name": "John Doe",
        "email": "john@example.com",
        "password": hash_password("password123"),
        "is_admin": False,
        "email_verified_at": datetime(2026, 1, 1, 9, 0),
        "verification_token": None,
        "reset_token": None,
        "reset_token_expires": None,
        "created_at": datetime(2026, 1, 1, 9, 0),
        "updated_at": datetime(2026, 1, 1, 9, 0),
    }
    row.update(overrides)
    return row


def category_row(**overrides):
    row = {
        "id": 1,
        "name": "Technology",
        "slug": "technology",
        "description": "Latest tech news and tutorials",
        "created_at": datetime(2026, 1, 1, 9, 0),
        "updated_at": datetime(2026, 1, 1, 9, 0),
    }
    row.update(overrides)
    return row


def post_row(**overrides):
    row = {
        "id": 1,
        "user_id": 1,
        "category_id": 1,
        "title": "Getting Started with FF Blog",
        "slug": "getting-started-ff-blog",
        "excerpt": None,
        "content": "<p>FF Blog is a small Flask application for publishing posts.</p>",
        "status": "published",
        "views": 41,
        "image": None,
        "meta_title": None,
        "meta_description": None,
        "meta_keywords": None,
        "published_at": datetime(2026, 3, 14, 12, 0),
        "created_at": datetime(2026, 3, 14, 12, 0),
        "updated_at": datetime(2026, 3, 14, 12, 0),
    }
    row.update(overrides)
    return row


def comment_row(**overrides):
    row = {
        "id": 1,
        "post_id": 1,
        "user_id": None,
        "author_name": "Jane Smith",
        "content": "Great introduction, thanks!",
        "approved": True,
        "created_at": datetime(2026, 3, 15, 8, 30),
        "updated_at": datetime(2026, 3, 15, 8, 30),
    }
    row.update(overrides)
    return row


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def _reset_state():
    """Start every test with an empty array cache and no shared view data."""
    cache._array_store.clear()
    cache._locks.clear()
    views._shared.clear()
    yield
    cache._array_store.clear()
    views._shared.clear()


@pytest.fixture
def fake_db():
    """Install a :class:`FakeConnection` as the database connection."""
    conn = FakeConnection()
    db.set_connection_factory(lambda: conn)
    yield conn
    db.set_connection_factory(None)


@pytest.fixture
def app(tmp_path, fake_db):
    """Return the Flask app configured for testing.

    Logs go to ``tmp_path/logs`` and generated files to ``tmp_path/generated``.

    :returns: Configured Flask application instance.
    :rtype: flask.Flask
    """
    overrides = {
        "LOG_DIR": str(tmp_path / "logs"),
        "CACHE_DIR": str(tmp_path / "cache"),
        "GENERATOR_BASE_DIR": str(tmp_path / "generated"),
    }
    flask_app = create_app(load_config(overrides, base=TestingConfig))
    yield flask_app


@pytest.fixture
def client(app):
    """Return a Flask test client for the app fixture.

    :rtype: flask.testing.FlaskClient
    """
    return app.test_client()


@pytest.fixture
def login(client, fake_db):
    """Return a helper that signs ``client`` in as a user built from ``user_row``.

    The user is served to Flask-Login's loader through a fake-db rule.
    """

    def _login(**overrides):
        row = user_row(**overrides)
        fake_db.on(
            "FROM users WHERE id = %s LIMIT 1",
            lambda params: [row] if params and params[0] == row["id"] else [],
        )
        with client.session_transaction() as sess:
            sess["_user_id"] = str(row["id"])
            sess["_fresh"] = True
        return row

    return _login
