import sqlite3

import pytest
from fastapi.testclient import TestClient

from config import get_settings
from db_setup import ConnectionPool, close_db, get_db_connection, init_db


@pytest.fixture
def db_path(tmp_path, monkeypatch: pytest.MonkeyPatch) -> str:
    path = str(tmp_path / "contacts.db")
    monkeypatch.setenv("DB_NAME", path)
    get_settings.cache_clear()
    close_db()

    init_db(path)
    yield path

    close_db()
    get_settings.cache_clear()


@pytest.fixture
def pool(db_path):
    pool = ConnectionPool(db_path, max_size=10, timeout=5.0)
    yield pool
    pool.close()


@pytest.fixture
def conn(db_path):
    conn = get_db_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def client(db_path) -> TestClient:
    from main import app

    with TestClient(app) as test_client:
        yield test_client


def seed_contact(
    conn: sqlite3.Connection,
    *,
    created_at: str,
    email=None,
    phone=None,
    linked_id=None,
    precedence="primary",
    contact_id=None,
    deleted_at=None,
) -> int:
    """Insert a row directly, bypassing the linkage checks in contacts.py."""
    cursor = conn.execute(
        """
        INSERT INTO Contact (id, phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt, deletedAt)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (contact_id, phone, email, linked_id, precedence, created_at, created_at, deleted_at),
    )
    return cursor.lastrowid


def all_rows(conn: sqlite3.Connection) -> list:
    return [dict(row) for row in conn.execute("SELECT * FROM Contact ORDER BY id")]
