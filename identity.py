"""Contact cluster resolution.

Each cluster is one primary contact plus the secondaries linked directly
to it. ``identify`` folds a new (email, phoneNumber) observation into the
clusters: it attaches it to a matching cluster, merges clusters that the
observation proves belong to one person, or starts a new cluster.
"""
import logging
import sqlite3
import time
from typing import Callable, List, Optional, TypeVar

from config import get_settings
from contacts import create_contact, find_contacts, get_cluster, get_contact, relink_secondaries, update_to_secondary
from db_models import Contact, ContactResponse, LinkPrecedence
from db_setup import ConnectionPool, get_pool, transaction
from errors import ClusterIntegrityError, is_transient_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_root_primary(conn: sqlite3.Connection, contact: Contact) -> Contact:
    """Follow ``linkedId`` from *contact* up to the primary anchoring its cluster.

    Merges keep every secondary one hop from its primary, so a longer
    chain is logged as corrupt linkage but still resolved. Cycles and
    dangling links raise ``ClusterIntegrityError``.
    """
    current = contact
    seen = {contact.id}
    while not current.is_primary:
        if current.linkedId is None:
            raise ClusterIntegrityError(f"Secondary contact {current.id} has no linkedId")
        parent = get_contact(conn, current.linkedId)
        if parent is None:
            raise ClusterIntegrityError(
                f"Contact {current.id} links to missing contact {current.linkedId}"
            )
        if parent.id in seen:
            raise ClusterIntegrityError(f"Link cycle detected at contact {parent.id}")
        seen.add(parent.id)
        current = parent

    if len(seen) > 2:
        logger.error(
            "Contact %d is %d hops from its primary %d; cluster linkage is not flat",
            contact.id, len(seen) - 1, current.id,
        )
    return current


def build_response(primary_id: int, cluster: List[Contact]) -> ContactResponse:
    """Project a cluster snapshot into its consolidated view.

    The primary's email and phone number come first, then the secondaries'
    values in cluster order. Repeated values are listed once.
    """
    primary = next((c for c in cluster if c.id == primary_id), None)
    secondaries = [c for c in cluster if c.id != primary_id]

    emails = []
    phone_numbers = []
    for contact in ([primary] if primary else []) + secondaries:
        if contact.email and contact.email not in emails:
            emails.append(contact.email)
        if contact.phoneNumber and contact.phoneNumber not in phone_numbers:
            phone_numbers.append(contact.phoneNumber)

    return ContactResponse(
        primaryContactId=primary_id,
        emails=emails,
        phoneNumbers=phone_numbers,
        secondaryContactIds=[c.id for c in secondaries],
    )


def _is_covered(cluster: List[Contact], email: Optional[str], phone: Optional[str]) -> bool:
    email_covered = not email or any(c.email == email for c in cluster)
    phone_covered = not phone or any(c.phoneNumber == phone for c in cluster)
    return email_covered and phone_covered


def _identify(email: Optional[str], phone: Optional[str], pool: Optional[ConnectionPool] = None) -> ContactResponse:
    email = email or None
    phone = str(phone) if phone not in (None, "") else None
    if not email and not phone:
        raise ValueError("At least one of email or phoneNumber must be provided")

    pool = pool or get_pool()
    with pool.connection() as conn:
        with transaction(conn):
            matched = find_contacts(conn, email, phone)

            if not matched:
                contact = create_contact(conn, email, phone)
                logger.info("Created primary contact %d", contact.id)
                new_cluster = [contact]
            else:
                new_cluster = None
                roots = {}
                for match in matched:
                    root = get_root_primary(conn, match)
                    roots[root.id] = root

                ordered_roots = sorted(roots.values(), key=lambda c: (c.createdAt, c.id))
                winner = ordered_roots[0]

                for loser in ordered_roots[1:]:
                    update_to_secondary(conn, loser.id, winner.id)
                    moved = relink_secondaries(conn, loser.id, winner.id)
                    logger.info(
                        "Merged cluster %d into %d (%d secondaries relinked)",
                        loser.id, winner.id, moved,
                    )

                cluster = get_cluster(conn, winner.id)
                if not _is_covered(cluster, email, phone):
                    contact = create_contact(conn, email, phone, winner.id, LinkPrecedence.SECONDARY)
                    logger.info("Added secondary contact %d to cluster %d", contact.id, winner.id)

        if new_cluster is not None:
            return build_response(new_cluster[0].id, new_cluster)
        return build_response(winner.id, get_cluster(conn, winner.id))


def with_retry(fn: Callable[[], T], attempts: int = 3, delay: float = 2.0) -> T:
    """Call *fn*, re-running it from scratch after transient storage failures.

    At most *attempts* calls are made, *delay* seconds apart. Any other
    error, or the last transient one, propagates unchanged.
    """
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if not is_transient_error(exc) or attempt == attempts:
                raise
            logger.warning(
                "Storage unavailable (%s), retrying in %ss (attempt %d/%d)",
                exc, delay, attempt, attempts,
            )
            time.sleep(delay)


def identify(email: Optional[str] = None, phone_number: Optional[str] = None, pool: Optional[ConnectionPool] = None) -> ContactResponse:
    settings = get_settings()
    return with_retry(
        lambda: _identify(email, phone_number, pool),
        attempts=settings.db_retry_attempts,
        delay=settings.db_retry_delay,
    )
