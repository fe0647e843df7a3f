"""Add the admin flag to users."""

from psycopg import sql


def up(cur):
    cur.execute(sql.SQL("ALTER TABLE users ADD COLUMN IF NOT EXISTS is_admin BOOLEAN NOT NULL DEFAULT FALSE;"))


def down(cur):
    cur.execute(sql.SQL("ALTER TABLE users DROP COLUMN IF EXISTS is_admin;"))
