"""Row-level reads and writes on the Contact table.

Every function takes the caller's connection so that it runs inside the
caller's transaction and sees that transaction's earlier writes.
"""
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from db_models import Contact, LinkPrecedence
from db_setup import execute_query
from errors import ClusterIntegrityError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def find_contacts(conn: sqlite3.Connection, email: Optional[str] = None, phone: Optional[str] = None) -> List[Contact]:
    conditions = []
    params = []
    if email:
        conditions.append("email = ?")
        params.append(email)
    if phone:
        conditions.append("phoneNumber = ?")
        params.append(phone)
    if not conditions:
        return []

    query = f"""
        SELECT * FROM Contact
        WHERE deletedAt IS NULL
        AND ({' OR '.join(conditions)})
        ORDER BY createdAt ASC, id ASC
    """
    return [Contact.model_validate(row) for row in execute_query(conn, query, params)]


def get_contact(conn: sqlite3.Connection, contact_id: int) -> Optional[Contact]:
    rows = execute_query(conn, "SELECT * FROM Contact WHERE id = ?", (contact_id,))
    if not rows:
        return None
    return Contact.model_validate(rows[0])


def get_cluster(conn: sqlite3.Connection, primary_id: int) -> List[Contact]:
    """Return the live primary and every live secondary pointing at it, oldest first."""
    rows = execute_query(conn, """
        SELECT * FROM Contact
        WHERE deletedAt IS NULL
        AND (id = ? OR linkedId = ?)
        ORDER BY createdAt ASC, id ASC
    """, (primary_id, primary_id))
    return [Contact.model_validate(row) for row in rows]


def _require_primary(conn: sqlite3.Connection, primary_id: int) -> Contact:
    # Soft-deleted primaries still anchor their cluster.
    target = get_contact(conn, primary_id)
    if target is None:
        raise ClusterIntegrityError(f"Contact {primary_id} does not exist")
    if not target.is_primary:
        raise ClusterIntegrityError(
            f"Contact {primary_id} is a secondary; secondaries must link to a primary"
        )
    return target


def create_contact(
    conn: sqlite3.Connection,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    linked_id: Optional[int] = None,
    precedence: LinkPrecedence = LinkPrecedence.PRIMARY,
) -> Contact:
    """Insert a contact and return the stored row."""
    if precedence == LinkPrecedence.PRIMARY and linked_id is not None:
        raise ClusterIntegrityError("A primary contact cannot carry a linkedId")
    if precedence == LinkPrecedence.SECONDARY:
        if linked_id is None:
            raise ClusterIntegrityError("A secondary contact requires a linkedId")
        _require_primary(conn, linked_id)

    now = _now()
    contact_id = execute_query(conn, """
        INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (phone, email, linked_id, LinkPrecedence(precedence).value, now, now))

    return get_contact(conn, contact_id)


def update_to_secondary(conn: sqlite3.Connection, contact_id: int, primary_id: int):
    if contact_id == primary_id:
        raise ClusterIntegrityError(f"Contact {contact_id} cannot link to itself")
    _require_primary(conn, primary_id)

    execute_query(conn, """
        UPDATE Contact
        SET linkedId = ?, linkPrecedence = 'secondary', updatedAt = ?
        WHERE id = ?
    """, (primary_id, _now(), contact_id))


def relink_secondaries(conn: sqlite3.Connection, old_primary_id: int, new_primary_id: int) -> int:
    """Point every live secondary of *old_primary_id* at *new_primary_id*."""
    return execute_query(conn, """
        UPDATE Contact
        SET linkedId = ?, updatedAt = ?
        WHERE linkedId = ? AND deletedAt IS NULL
    """, (new_primary_id, _now(), old_primary_id))
