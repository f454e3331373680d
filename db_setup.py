import logging
import sqlite3
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.pool import QueuePool

from config import get_settings
from errors import PoolTimeoutError

logger = logging.getLogger(__name__)

_pool = None


def init_db(db_name: Optional[str] = None):
    db_name = db_name or get_settings().db_name
    conn = sqlite3.connect(db_name)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT NOT NULL CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updatedAt DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id)
        )
    ''')
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact(email) WHERE deletedAt IS NULL")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_contact_phone ON Contact(phoneNumber) WHERE deletedAt IS NULL")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_contact_linkedid ON Contact(linkedId) WHERE deletedAt IS NULL")
    conn.commit()

    conn.close()
    logger.info("Database initialized at %s", db_name)


def get_db_connection(db_name: str, timeout: float = 10.0) -> sqlite3.Connection:
    # Transactions are driven explicitly with BEGIN/COMMIT/ROLLBACK.
    conn = sqlite3.connect(db_name, timeout=timeout, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def execute_query(conn: sqlite3.Connection, query: str, params=None):
    cursor = conn.cursor()

    if not params:
        cursor.execute(query)
    else:
        cursor.execute(query, params)

    statement = query.strip().upper()
    if statement.startswith('SELECT'):
        return [dict(row) for row in cursor.fetchall()]
    if statement.startswith('INSERT'):
        return cursor.lastrowid
    return cursor.rowcount


class ConnectionPool:
    """Bounded pool of sqlite connections shared across worker threads.

    Pooling is delegated to a SQLAlchemy ``QueuePool`` engine; callers get
    the raw ``sqlite3`` connection so the SQL layer stays plain DB-API.
    At most ``max_size`` connections are checked out at once and a caller
    waits up to ``timeout`` seconds before ``PoolTimeoutError`` is raised.
    """

    def __init__(self, db_name: str, max_size: int = 10, timeout: float = 10.0):
        self.db_name = db_name
        self.max_size = max_size
        self.timeout = timeout
        self.engine = create_engine(
            f"sqlite:///{db_name}",
            creator=lambda: get_db_connection(db_name, timeout=timeout),
            poolclass=QueuePool,
            pool_size=max_size,
            max_overflow=0,
            pool_timeout=timeout,
            pool_use_lifo=True,
            pool_pre_ping=True,
        )

    @contextmanager
    def connection(self):
        try:
            pooled = self.engine.raw_connection()
        except SQLAlchemyTimeoutError as exc:
            raise PoolTimeoutError(
                f"No database connection available after {self.timeout}s "
                f"(pool size {self.max_size})"
            ) from exc

        conn = pooled.driver_connection
        try:
            yield conn
        finally:
            if conn.in_transaction:
                # Never hand out a connection with an open transaction.
                pooled.invalidate()
            pooled.close()

    def close(self):
        self.engine.dispose()


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run the block in one write transaction, rolling back on any error.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so two
    resolutions never interleave their read-then-insert steps.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.warning("Transaction rolled back")
        raise


def get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = ConnectionPool(
            settings.db_name,
            max_size=settings.db_pool_size,
            timeout=settings.db_connect_timeout,
        )
    return _pool


def close_db():
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None
