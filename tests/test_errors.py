import socket
import sqlite3

import pytest
from sqlalchemy import exc as sa_exc

from errors import ClusterIntegrityError, PoolTimeoutError, StorageUnavailableError, is_transient_error


@pytest.mark.parametrize(
    "exc",
    [
        socket.gaierror(socket.EAI_NONAME, "Name or service not known"),
        ConnectionRefusedError(111, "Connection refused"),
        TimeoutError("timed out"),
        socket.timeout("timed out"),
        StorageUnavailableError("down"),
        PoolTimeoutError("pool exhausted"),
        sqlite3.OperationalError("database is locked"),
        sqlite3.OperationalError("unable to open database file"),
        sa_exc.TimeoutError("QueuePool limit of size 10 overflow 0 reached"),
        sa_exc.OperationalError("BEGIN IMMEDIATE", {}, sqlite3.OperationalError("database is locked")),
    ],
)
def test_connectivity_failures_are_transient(exc):
    assert is_transient_error(exc)


@pytest.mark.parametrize(
    "exc",
    [
        sqlite3.IntegrityError("CHECK constraint failed"),
        sqlite3.OperationalError("no such table: Contact"),
        ClusterIntegrityError("cycle"),
        sa_exc.IntegrityError("INSERT", {}, sqlite3.IntegrityError("CHECK constraint failed")),
        ValueError("bad input"),
        RuntimeError("boom"),
    ],
)
def test_other_failures_are_terminal(exc):
    assert not is_transient_error(exc)
