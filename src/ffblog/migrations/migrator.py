"""
Apply and roll back migration files in batches.
"""

import importlib.util
import logging
import os
import re

from psycopg import sql

from ..exceptions import MigrationError
from ..paths import MIGRATIONS_DIR

logger = logging.getLogger(__name__)

# NNN_snake_case_name.py
MIGRATION_FILE_RE = re.compile(r"^\d+_[a-z0-9_]+\.py$")

TABLE = "migrations"


class Migrator:
    """Run pending migrations and roll back batches.

    Each migration runs in its own transaction together with the insert
    (or delete) of its row in the ``migrations`` table, so a failure leaves
    that migration unrecorded and stops the run.

    :param connection: Open psycopg connection (not in autocommit mode).
    :type connection: psycopg.Connection
    :param path: Directory holding the migration files.
    :type path: str
    """

    def __init__(self, connection, path=MIGRATIONS_DIR):
        self.connection = connection
        self.path = path
        self._table_ready = False

    # -------------------------------
    # BOOKKEEPING
    # -------------------------------
    def ensure_table(self):
        """Create the ``migrations`` table if it does not exist."""
        if self._table_ready:
            return
        stmt = sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                id SERIAL PRIMARY KEY,
                migration VARCHAR(255) NOT NULL UNIQUE,
                batch INTEGER NOT NULL,
                executed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
        """).format(sql.Identifier(TABLE))
        self._execute(stmt)
        self.connection.commit()
        self._table_ready = True

    def _execute(self, query, params=None, fetch=None):
        with self.connection.cursor() as cur:
            cur.execute(query, params)
            if fetch == "all":
                return cur.fetchall()
            if fetch == "one":
                return cur.fetchone()
        return None

    def files(self):
        """Migration names (file names without ``.py``) in filename order."""
        if not os.path.isdir(self.path):
            return []
        return [name[:-3] for name in sorted(os.listdir(self.path)) if MIGRATION_FILE_RE.match(name)]

    def ran(self):
        """Names of applied migrations, oldest first."""
        self.ensure_table()
        rows = self._execute(
            sql.SQL("SELECT migration FROM {} ORDER BY batch, id").format(sql.Identifier(TABLE)),
            fetch="all",
        )
        self.connection.commit()
        return [row["migration"] for row in rows or []]

    def pending(self):
        """Migrations on disk that have not been applied."""
        applied = set(self.ran())
        return [name for name in self.files() if name not in applied]

    def last_batch(self):
        self.ensure_table()
        row = self._execute(
            sql.SQL("SELECT COALESCE(MAX(batch), 0) AS batch FROM {}").format(sql.Identifier(TABLE)),
            fetch="one",
        )
        self.connection.commit()
        return int(row["batch"]) if row else 0

    def load(self, name):
        """Import migration ``name`` and return its module.

        :raises MigrationError: If the file is missing or lacks ``up``/``down``.
        """
        filename = os.path.join(self.path, f"{name}.py")
        if not os.path.isfile(filename):
            raise MigrationError(f"Migration file not found: {name}")

        spec = importlib.util.spec_from_file_location(f"ffblog_migration_{name}", filename)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        if not callable(getattr(module, "up", None)) or not callable(getattr(module, "down", None)):
            raise MigrationError(f"Migration {name} must define up(cur) and down(cur)")
        return module

    # -------------------------------
    # RUN / ROLLBACK
    # -------------------------------
    def run(self):
        """Apply every pending migration in one new batch.

        :returns: Names of the migrations applied.
        :rtype: list[str]
        """
        pending = self.pending()
        if not pending:
            logger.info("Nothing to migrate")
            return []

        batch = self.last_batch() + 1
        insert = sql.SQL("INSERT INTO {} (migration, batch) VALUES (%s, %s)").format(sql.Identifier(TABLE))
        applied = []
        for name in pending:
            module = self.load(name)
            try:
                with self.connection.cursor() as cur:
                    module.up(cur)
                    cur.execute(insert, (name, batch))
                self.connection.commit()
            except Exception as exc:
                self.connection.rollback()
                logger.error("Migration failed", extra={"context": {"migration": name, "error": str(exc)}})
                raise MigrationError(f"Migration {name} failed: {exc}") from exc
            logger.info("Migrated", extra={"context": {"migration": name, "batch": batch}})
            applied.append(name)
        return applied

    def rollback(self, steps=1):
        """Undo the last ``steps`` batches, newest migration first.

        :returns: Names of the migrations rolled back.
        :rtype: list[str]
        """
        self.ensure_table()
        steps = max(1, int(steps))
        rows = self._execute(
            sql.SQL("""
                SELECT migration, batch FROM {table}
                WHERE batch IN (
                    SELECT DISTINCT batch FROM {table} ORDER BY batch DESC LIMIT {steps}
                )
                ORDER BY batch DESC, id DESC
            """).format(table=sql.Identifier(TABLE), steps=sql.Literal(steps)),
            fetch="all",
        )
        self.connection.commit()
        if not rows:
            logger.info("Nothing to rollback")
            return []

        delete = sql.SQL("DELETE FROM {} WHERE migration = %s").format(sql.Identifier(TABLE))
        rolled_back = []
        for row in rows:
            name = row["migration"]
            module = self.load(name)
            try:
                with self.connection.cursor() as cur:
                    module.down(cur)
                    cur.execute(delete, (name,))
                self.connection.commit()
            except Exception as exc:
                self.connection.rollback()
                logger.error("Rollback failed", extra={"context": {"migration": name, "error": str(exc)}})
                raise MigrationError(f"Rollback of {name} failed: {exc}") from exc
            logger.info("Rolled back", extra={"context": {"migration": name, "batch": row["batch"]}})
            rolled_back.append(name)
        return rolled_back

    def reset(self):
        """Roll back every applied migration."""
        batches = self.last_batch()
        if not batches:
            return []
        return self.rollback(steps=batches)

    def status(self):
        """One entry per known migration: name, whether it ran, and its batch.

        :rtype: list[dict]
        """
        self.ensure_table()
        rows = self._execute(
            sql.SQL("SELECT migration, batch FROM {} ORDER BY batch, id").format(sql.Identifier(TABLE)),
            fetch="all",
        )
        self.connection.commit()
        batches = {row["migration"]: row["batch"] for row in rows or []}

        names = self.files()
        # Applied migrations whose files were removed still show up
        names += [name for name in batches if name not in names]
        return [
            {"migration": name, "ran": name in batches, "batch": batches.get(name)}
            for name in names
        ]
