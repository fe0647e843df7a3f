"""
Database connection utilities for the FF Blog application.

Provides functions to create PostgreSQL connections, run statements with
consistent commit/rollback handling, and hand out one connection per
Flask request.
"""

# Used to read database credentials from environment variables
import os

# Used for the module logger
import logging

# Used for optional return type annotation on create_connection
from typing import Optional

# PostgreSQL database adapter for Python (psycopg3)
import psycopg

# sql module for safe SQL composition; prevents raw string injection
from psycopg import sql

# Connection used as a typed parameter so Pylint can resolve member access
# OperationalError used to catch connection failures
from psycopg import Connection, OperationalError

# Rows come back as dicts so models can be hydrated by column name
from psycopg.rows import dict_row

from flask import current_app, g, has_app_context

from .exceptions import DatabaseError

logger = logging.getLogger(__name__)

# Optional zero-argument callable returning a connection. Used by the CLI
# and by tests to inject fake connections.
_connection_factory = None

# Connection used when no Flask application context is active
_standalone_connection = None


def create_connection(
    db_name=None,
    db_user=None,
    db_password=None,
    db_host=None,
    db_port=None,
) -> Optional[Connection]:
    """Create and return a psycopg3 connection to the PostgreSQL database.

    Credentials are resolved from the explicit arguments first; if an
    argument is ``None``, the corresponding environment variable is used
    as a fallback (``DB_NAME``, ``DB_USER``, ``DB_PASSWORD``, ``DB_HOST``,
    ``DB_PORT``). Hard-coded defaults are provided only for non-sensitive
    values so the function remains usable in local development. Rows are
    returned as dictionaries.

    :param db_name: Name of the PostgreSQL database to connect to.
    :type db_name: str or None
    :param db_user: PostgreSQL username.
    :type db_user: str or None
    :param db_password: PostgreSQL password.
    :type db_password: str or None
    :param db_host: Host address of the PostgreSQL server.
    :type db_host: str or None
    :param db_port: Port the PostgreSQL server is listening on.
    :type db_port: str or None
    :returns: An open psycopg3 connection, or ``None`` on failure.
    :rtype: psycopg.Connection or None
    """
    # Resolve each credential: explicit argument, env var, safe default.
    resolved_name = db_name or os.environ.get("DB_NAME", "ff_blog")
    resolved_user = db_user or os.environ.get("DB_USER", "postgres")
    resolved_password = db_password or os.environ.get("DB_PASSWORD", "")
    resolved_host = db_host or os.environ.get("DB_HOST", "127.0.0.1")
    resolved_port = db_port or os.environ.get("DB_PORT", "5432")

    try:
        # Note: psycopg3 uses 'dbname' not 'database'.
        return psycopg.connect(
            dbname=resolved_name,
            user=resolved_user,
            password=resolved_password,
            host=resolved_host,
            port=resolved_port,
            row_factory=dict_row,
        )
    except OperationalError as e:
        logger.error("DB connection error: %s", e)
        return None


def execute_query(connection, query: sql.Composable, params=None):
    """Execute a single SQL statement in autocommit mode.

    Intended for DDL statements (``CREATE``, ``DROP``, ``TRUNCATE``) and
    other one-off queries that should take effect immediately.

    The ``query`` parameter must be a :class:`psycopg.sql.Composable`
    object (e.g. ``sql.SQL("...")``), not a raw string.

    :param connection: An open psycopg3 database connection.
    :type connection: psycopg.Connection
    :param query: SQL statement to execute.
    :type query: psycopg.sql.Composable
    :param params: Optional bound parameters.
    :type params: tuple or None
    """
    if not isinstance(query, sql.Composable):
        raise TypeError("execute_query() requires a psycopg.sql.Composable query")

    # Enable autocommit so changes persist immediately
    connection.autocommit = True

    with connection.cursor() as cursor:
        cursor.execute(query, params)


def set_connection_factory(factory):
    """Install a callable used instead of :func:`create_connection`.

    Passing ``None`` restores the default behaviour. Any standalone
    connection opened by the previous factory is closed.

    :param factory: Zero-argument callable returning a connection, or ``None``.
    :type factory: callable or None
    """
    global _connection_factory
    close_standalone()
    _connection_factory = factory


def connect():
    """Open a new connection using the installed factory or the app config.

    :returns: An open connection.
    :raises RuntimeError: If the database connection could not be established.
    """
    if _connection_factory is not None:
        conn = _connection_factory()
    elif has_app_context():
        cfg = current_app.config
        conn = create_connection(
            cfg.get("DB_NAME"),
            cfg.get("DB_USER"),
            cfg.get("DB_PASSWORD"),
            cfg.get("DB_HOST"),
            cfg.get("DB_PORT"),
        )
    else:
        conn = create_connection()

    if conn is None:
        raise RuntimeError("Failed to connect to the database.")
    return conn


def get_db():
    """Return the connection for the current request or process.

    Inside a Flask application context the connection is stored on
    :data:`flask.g` and closed by :func:`close_db` at teardown. Outside an
    application context a single module-level connection is reused.

    :returns: An open connection.
    """
    global _standalone_connection

    if has_app_context():
        if "db" not in g:
            g.db = connect()
        return g.db

    if _standalone_connection is None:
        _standalone_connection = connect()
    return _standalone_connection


def close_db(exc=None):
    """Close the request connection, if one was opened.

    Registered with :meth:`flask.Flask.teardown_appcontext`.
    """
    conn = g.pop("db", None)
    if conn is not None:
        if exc is not None:
            conn.rollback()
        conn.close()


def close_standalone():
    """Close the module-level connection used outside an app context."""
    global _standalone_connection
    if _standalone_connection is not None:
        _standalone_connection.close()
        _standalone_connection = None


def run(query, params=None, fetch="all", commit=False):
    """Execute a statement on the current connection.

    Commits when ``commit`` is set and rolls back on any database error,
    which is logged and re-raised as :class:`ffblog.exceptions.DatabaseError`.

    :param query: Statement to execute.
    :type query: psycopg.sql.Composable
    :param params: Bound parameters.
    :type params: tuple or list or None
    :param fetch: ``"all"``, ``"one"`` or ``None`` (return the row count).
    :type fetch: str or None
    :param commit: Commit the transaction after executing.
    :type commit: bool
    :returns: List of row dicts, one row dict (or ``None``), or the row count.
    """
    conn = get_db()
    try:
        with conn.cursor() as cur:
            cur.execute(query, params)
            if fetch == "all":
                result = cur.fetchall()
            elif fetch == "one":
                result = cur.fetchone()
            else:
                result = cur.rowcount
        if commit:
            conn.commit()
        return result
    except psycopg.Error as exc:
        conn.rollback()
        logger.error("Query failed: %s", exc)
        raise DatabaseError(str(exc)) from exc


def init_app(app):
    """Register connection teardown on the Flask app."""
    app.teardown_appcontext(close_db)
