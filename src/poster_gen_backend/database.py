"""
SQLite database for the poster catalog, generated posters, orders and users.

This module owns the connection settings and the schema. Repositories in
``repositories.py`` and ``auth.py`` borrow connections through
``Database.connection()`` and never open their own.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import ConflictError, DatabaseError

logger = logging.getLogger(__name__)

# Default database path
DEFAULT_DB_PATH = Path("data/poster_gen.db")

# Largest value SQLite stores in an INTEGER column.
MAX_ROW_ID = 2**63 - 1


def is_row_id(value: int) -> bool:
    """True if ``value`` can name a row; larger ints overflow the driver."""
    return 0 < value <= MAX_ROW_ID

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS layouts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        file_path TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS poster_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        type TEXT NOT NULL,
        layout_id INTEGER NOT NULL REFERENCES layouts(id),
        price INTEGER NOT NULL DEFAULT 0,
        thumbnail_url TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        required_fields TEXT NOT NULL,
        default_customization TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_poster_templates_active ON poster_templates(is_active)",
    """
    CREATE TABLE IF NOT EXISTS assets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        data TEXT NOT NULL,
        default_color TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_assets_type ON assets(type)",
    """
    CREATE TABLE IF NOT EXISTS posters (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        template_id INTEGER NOT NULL REFERENCES poster_templates(id),
        business_name TEXT NOT NULL,
        user_input_data TEXT NOT NULL,
        final_customization TEXT NOT NULL,
        artifact_url TEXT,
        status TEXT NOT NULL DEFAULT 'completed',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_posters_template ON posters(template_id)",
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS revoked_tokens (
        jti TEXT PRIMARY KEY,
        expires_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        order_number TEXT NOT NULL UNIQUE,
        total_amount INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        receipt TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_user ON orders(user_id)",
)


class Database:
    """
    SQLite database shared by all repositories.

    Thread-safe: every call opens its own connection and SQLite handles
    concurrent access with WAL mode.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get a database connection with proper settings.

        Commits when the block exits cleanly and rolls back otherwise.
        Driver errors are translated: constraint violations become
        ``ConflictError``, everything else ``DatabaseError``.
        """
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            logger.warning(f"Constraint violation: {exc}")
            raise ConflictError("record conflicts with existing data") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error(f"Database operation failed: {exc}")
            raise DatabaseError("database operation failed") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self.connection() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
