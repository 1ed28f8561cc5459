# =======================================================================================
# gym_access/database.py - Database Management
# =======================================================================================
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool

from .config import config

logger = logging.getLogger(__name__)

# SQLite DDL. Other backends are expected to be provisioned by migrations.
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        card_id TEXT UNIQUE,
        short_card_id TEXT,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        date_of_birth TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_members_short_card_id ON members (short_card_id)",
    """
    CREATE TABLE IF NOT EXISTS membership_types (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        duration_days INTEGER,
        visit_limit INTEGER,
        enter_by INTEGER,
        price REAL NOT NULL DEFAULT 0,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memberships (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER NOT NULL REFERENCES members (id),
        membership_type_id INTEGER NOT NULL REFERENCES membership_types (id),
        start_date TEXT,
        end_date TEXT,
        remaining_visits INTEGER,
        status TEXT NOT NULL,
        purchase_date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_memberships_member ON memberships (member_id, is_deleted)",
    "CREATE INDEX IF NOT EXISTS idx_memberships_status ON memberships (status, is_deleted)",
    """
    CREATE TABLE IF NOT EXISTS entry_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        member_id INTEGER REFERENCES members (id),
        membership_id INTEGER REFERENCES memberships (id),
        card_id TEXT,
        entry_time TEXT NOT NULL,
        entry_date TEXT NOT NULL,
        status TEXT NOT NULL,
        notes TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_entry_logs_member_date ON entry_logs (member_id, entry_date, status)",
    "CREATE INDEX IF NOT EXISTS idx_entry_logs_entry_date ON entry_logs (entry_date)",
    """
    CREATE TABLE IF NOT EXISTS reconciliation_checkpoints (
        check_type TEXT PRIMARY KEY,
        last_run_at TEXT NOT NULL,
        last_run_date TEXT NOT NULL,
        status TEXT NOT NULL,
        pending_to_active INTEGER NOT NULL DEFAULT 0,
        pending_to_inactive INTEGER NOT NULL DEFAULT 0,
        pending_to_expired INTEGER NOT NULL DEFAULT 0,
        active_to_expired INTEGER NOT NULL DEFAULT 0,
        error_message TEXT
    )
    """,
]


class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or config.DB_URL
        self.is_sqlite = self.db_url.startswith("sqlite")

        if self.is_sqlite:
            self.engine: Engine = create_engine(
                self.db_url,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
                future=True,
            )
            self._install_sqlite_hooks(self.engine)
        else:
            self.engine = create_engine(
                self.db_url,
                poolclass=QueuePool,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
                isolation_level="READ COMMITTED",
                future=True,
            )

    @property
    def supports_row_locks(self) -> bool:
        """SQLite serializes writers itself; everything else needs FOR UPDATE."""
        return not self.is_sqlite

    @staticmethod
    def _install_sqlite_hooks(engine: Engine):
        # pysqlite's own BEGIN handling is disabled so that each write
        # transaction takes the database write lock up front.
        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.execute(f"PRAGMA busy_timeout = {int(config.DB_BUSY_TIMEOUT_MS)}")
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA synchronous = NORMAL")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn: Connection):
            if conn.get_execution_options().get("read_only"):
                conn.exec_driver_sql("BEGIN")
            else:
                conn.exec_driver_sql("BEGIN IMMEDIATE")

    @contextmanager
    def get_connection(self):
        """Write transaction: commits on exit, rolls back on error."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def get_read_connection(self):
        """Read-only transaction with a consistent snapshot."""
        with self.engine.connect() as conn:
            conn = conn.execution_options(read_only=True)
            with conn.begin():
                yield conn

    def create_schema(self):
        """Create tables if missing (SQLite only)."""
        if not self.is_sqlite:
            logger.info("Skipping schema bootstrap for %s", self.engine.dialect.name)
            return
        with self.get_connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(text(statement))
        logger.info("Database schema ready at %s", self.db_url)

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_read_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

    def dispose(self):
        self.engine.dispose()


# Global database instance
db_manager = DatabaseManager()
