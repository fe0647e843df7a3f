"""Create the categories table."""

from psycopg import sql


def up(cur):
    cur.execute(sql.SQL("""
        CREATE TABLE IF NOT EXISTS categories (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(255) NOT NULL UNIQUE,
            description TEXT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
    """))


def down(cur):
    cur.execute(sql.SQL("DROP TABLE IF EXISTS categories CASCADE;"))
