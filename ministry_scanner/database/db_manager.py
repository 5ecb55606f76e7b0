import sqlite3
from pathlib import Path
from contextlib import contextmanager
from ministry_scanner.config.paths import DB_PATH
from ministry_scanner.utils.logging import setup_logger

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
REQUIRED_TABLES = ('churches', 'members', 'ministers')


class DatabaseManager:
    """
    Manages the SQLite database holding churches, members and ministers.
    """

    def __init__(self, db_path=None):
        self.db_path = Path(db_path) if db_path else DB_PATH
        self.logger = setup_logger()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Commits on success, rolls back and re-raises on errors.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        # church_id ON DELETE SET NULL needs this per connection
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            self.logger.error(f"Database error on {self.db_path.name}: {e}")
            raise
        finally:
            conn.close()

    def _run(self, conn, query, params):
        return conn.execute(query, tuple(params or ()))

    def execute_query(self, query, params=None):
        """
        Run a SELECT and return all rows.
        """
        with self.get_connection() as conn:
            return self._run(conn, query, params).fetchall()

    def fetch_one(self, query, params=None):
        """
        Run a SELECT and return the first row as a dict, or None.
        """
        with self.get_connection() as conn:
            row = self._run(conn, query, params).fetchone()
        return dict(row) if row is not None else None

    def execute_update(self, query, params=None):
        """
        Run an INSERT/UPDATE/DELETE.
        Returns the new row id for inserts.
        """
        with self.get_connection() as conn:
            return self._run(conn, query, params).lastrowid

    def table_exists(self, table_name):
        row = self.fetch_one(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return row is not None

    def missing_tables(self):
        return [table for table in REQUIRED_TABLES if not self.table_exists(table)]

    def is_initialized(self):
        return not self.missing_tables()

    def initialize_db(self):
        """
        Create the tables and indexes from schema.sql.
        The schema only uses IF NOT EXISTS, so running it twice is harmless.
        """
        if not SCHEMA_PATH.exists():
            self.logger.error(f"Schema file not found: {SCHEMA_PATH}")
            raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

        with self.get_connection() as conn:
            conn.executescript(SCHEMA_PATH.read_text())
        self.logger.info(f"Database initialized at {self.db_path}")

    def ensure_schema(self):
        """
        Initialize the database when any required table is missing.

        Returns:
            True if the schema had to be created
        """
        missing = self.missing_tables()
        if not missing:
            return False
        self.logger.info(f"Creating missing tables: {', '.join(missing)}")
        self.initialize_db()
        return True
