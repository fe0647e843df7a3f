"""Create the users table."""

from psycopg import sql


def up(cur):
    cur.execute(sql.SQL("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            password VARCHAR(255) NOT NULL,
            email_verified_at TIMESTAMP NULL,
            verification_token VARCHAR(255) NULL,
            reset_token VARCHAR(255) NULL,
            reset_token_expires TIMESTAMP NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
    """))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS users_verification_token_idx ON users (verification_token);"))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS users_reset_token_idx ON users (reset_token);"))


def down(cur):
    cur.execute(sql.SQL("DROP TABLE IF EXISTS users CASCADE;"))
