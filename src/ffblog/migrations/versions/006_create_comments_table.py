"""Create the comments table."""

from psycopg import sql


def up(cur):
    cur.execute(sql.SQL("""
        CREATE TABLE IF NOT EXISTS comments (
            id SERIAL PRIMARY KEY,
            post_id INTEGER NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
            user_id INTEGER NULL REFERENCES users (id) ON DELETE SET NULL,
            author_name VARCHAR(100) NOT NULL,
            content TEXT NOT NULL,
            approved BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
    """))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS comments_post_id_idx ON comments (post_id);"))


def down(cur):
    cur.execute(sql.SQL("DROP TABLE IF EXISTS comments;"))
