"""Create the posts table."""

from psycopg import sql


def up(cur):
    cur.execute(sql.SQL("""
        CREATE TABLE IF NOT EXISTS posts (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            slug VARCHAR(255) NOT NULL UNIQUE,
            content TEXT NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'draft'
                CHECK (status IN ('draft', 'published')),
            views INTEGER NOT NULL DEFAULT 0,
            published_at TIMESTAMP NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
    """))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS posts_status_published_at_idx ON posts (status, published_at);"))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS posts_user_id_idx ON posts (user_id);"))
    cur.execute(sql.SQL("CREATE INDEX IF NOT EXISTS posts_category_id_idx ON posts (category_id);"))


def down(cur):
    cur.execute(sql.SQL("DROP TABLE IF EXISTS posts CASCADE;"))
