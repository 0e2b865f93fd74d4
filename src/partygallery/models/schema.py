"""
DuckDB schema for the gallery store.

Likes carry a unique ``(user_id, post_id)`` constraint so a user can like a
post at most once no matter how requests interleave.
"""

USERS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    external_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    profile_image TEXT,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

POSTS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL,
    author_name TEXT NOT NULL,
    storage_id TEXT NOT NULL,
    companion_storage_id TEXT,
    media_type TEXT NOT NULL,
    caption TEXT,
    width INTEGER,
    height INTEGER,
    created_at TIMESTAMP NOT NULL
);
"""

LIKES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS likes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    post_id TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, post_id)
);
"""

TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_posts_author_id ON posts(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_likes_post_id ON likes(post_id);",
]

REQUIRED_COLUMNS = {
    "users": {"id", "external_id", "name", "profile_image", "created_at"},
    "posts": {
        "id",
        "author_id",
        "author_name",
        "storage_id",
        "companion_storage_id",
        "media_type",
        "caption",
        "width",
        "height",
        "created_at",
    },
    "likes": {"id", "user_id", "post_id", "created_at"},
}


def get_schema_statements() -> list[str]:
    """
    Get all schema creation statements in execution order.

    Returns:
        List of SQL statements creating tables, then indexes
    """
    return [USERS_TABLE_SCHEMA, POSTS_TABLE_SCHEMA, LIKES_TABLE_SCHEMA, *TABLE_INDEXES]
