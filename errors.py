import socket
import sqlite3

from sqlalchemy.exc import DBAPIError
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

_TRANSIENT_SQLITE_MESSAGES = (
    "database is locked",
    "unable to open database file",
)


class ContactResolutionError(Exception):
    """Base class for errors raised by the reconciliation core."""


class StorageUnavailableError(ContactResolutionError):
    """The storage backend could not be reached in time."""


class PoolTimeoutError(StorageUnavailableError):
    """No pooled connection became free within the connect timeout."""


class ClusterIntegrityError(ContactResolutionError):
    """A contact cluster violates the flat primary/secondary linkage."""


def is_transient_error(exc: BaseException) -> bool:
    """Return True when *exc* is a connectivity failure worth retrying.

    Name resolution failures, refused connections and timeouts qualify,
    including SQLAlchemy pool timeouts and driver errors SQLAlchemy wraps.
    Constraint violations, integrity errors and anything else do not.
    """
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return is_transient_error(exc.orig)
    if isinstance(exc, (socket.gaierror, ConnectionRefusedError, TimeoutError,
                        SQLAlchemyTimeoutError, StorageUnavailableError)):
        return True
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        return any(text in message for text in _TRANSIENT_SQLITE_MESSAGES)
    return False
