"""SQLite schema management (code-first approach)."""

import logging

import aiosqlite

from grindset.core.db_client import get_db_path


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "grinds",
    "participate_records",
    "tasks",
    "messages",
]

_CREATED_DEFAULT = "DEFAULT (strftime('%Y-%m-%dT%H:%M:%f000+00:00', 'now'))"

_SCHEMA_STATEMENTS = [
    f"""
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        avatar TEXT NOT NULL DEFAULT '',
        created TEXT NOT NULL {_CREATED_DEFAULT}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS grinds (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        duration INTEGER NOT NULL CHECK (duration > 0),
        budget INTEGER NOT NULL CHECK (budget >= 0),
        start_date TEXT NOT NULL,
        created TEXT NOT NULL {_CREATED_DEFAULT}
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS participate_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        grind_id INTEGER NOT NULL REFERENCES grinds(id) ON DELETE CASCADE,
        missed_days INTEGER NOT NULL DEFAULT 0,
        total_penalty INTEGER NOT NULL DEFAULT 0,
        quitted BOOLEAN NOT NULL DEFAULT 0,
        quitted_at TEXT,
        created TEXT NOT NULL {_CREATED_DEFAULT},
        UNIQUE (user_id, grind_id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_type TEXT NOT NULL DEFAULT 'leetcode',
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        grind_id INTEGER NOT NULL REFERENCES grinds(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        day_key TEXT NOT NULL,
        completed BOOLEAN NOT NULL DEFAULT 0,
        finished_time TEXT,
        code TEXT,
        code_language TEXT,
        problem_title TEXT,
        problem_description TEXT,
        problem_url TEXT,
        problem_difficulty TEXT,
        problem_topic_tags TEXT,
        created TEXT NOT NULL {_CREATED_DEFAULT}
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_grind_day ON tasks (grind_id, day_key)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_grind_date ON tasks (user_id, grind_id, date)",
    f"""
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sender_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        receiver_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        content TEXT NOT NULL,
        type TEXT NOT NULL,
        invitation_grind_id INTEGER,
        invitation_status TEXT,
        read BOOLEAN NOT NULL DEFAULT 0,
        created TEXT NOT NULL {_CREATED_DEFAULT},
        CHECK (sender_id != receiver_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_receiver ON messages (receiver_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_sender ON messages (sender_id)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create every table and index if missing."""
    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(str(path)) as conn:
        for statement in _SCHEMA_STATEMENTS:
            await conn.execute(statement)
        await conn.commit()

    logger.info("Database schema initialized", extra={"db_path": str(path), "collections": COLLECTIONS})
