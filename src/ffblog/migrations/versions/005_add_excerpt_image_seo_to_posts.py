"""Add excerpt, cover image and SEO columns to posts."""

from psycopg import sql

COLUMNS = (
    ("excerpt", "TEXT"),
    ("image", "VARCHAR(255)"),
    ("meta_title", "VARCHAR(255)"),
    ("meta_description", "TEXT"),
    ("meta_keywords", "VARCHAR(255)"),
)


def up(cur):
    for column, column_type in COLUMNS:
        cur.execute(
            sql.SQL("ALTER TABLE posts ADD COLUMN IF NOT EXISTS {} " + column_type + " NULL;").format(
                sql.Identifier(column)
            )
        )


def down(cur):
    for column, _ in reversed(COLUMNS):
        cur.execute(sql.SQL("ALTER TABLE posts DROP COLUMN IF EXISTS {};").format(sql.Identifier(column)))
