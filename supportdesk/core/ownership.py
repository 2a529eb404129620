import logging
from typing import List, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, func
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from supportdesk.core.errors import AuthenticationRequired, IntegrityViolation
from supportdesk.core.identity import FOREIGN_ID_KEY, ForeignId, NativeId, classify, requester_identity
from supportdesk.core.lifecycle import VALID_STATUSES, validate_choice
from supportdesk.models.ticket import Ticket

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("supportdesk.security")


def require_identity(caller_identity: Optional[str]) -> Union[NativeId, ForeignId]:
    if caller_identity is None or not caller_identity.strip():
        raise AuthenticationRequired("Authentication required. Please log in to view your tickets.")
    return classify(caller_identity)


def owner_predicate(identity: Union[NativeId, ForeignId]) -> ColumnElement:
    if isinstance(identity, NativeId):
        return Ticket.user_id == identity.value
    return and_(
        Ticket.user_id.is_(None),
        Ticket.metadata_info.is_not(None),
        Ticket.metadata_info[FOREIGN_ID_KEY].as_string() == identity.value,
    )


def owns(ticket: Ticket, identity: Union[NativeId, ForeignId]) -> bool:
    return requester_identity(ticket) == identity


def is_owned_by(ticket: Ticket, caller_identity: Optional[str]) -> bool:
    return owns(ticket, require_identity(caller_identity))


def scope(caller_identity: Optional[str], status: Optional[str] = None) -> ColumnElement:
    """Build the WHERE clause restricting tickets to one caller (and optionally one status)."""
    identity = require_identity(caller_identity)
    clauses = [owner_predicate(identity)]
    if status:
        validate_choice("status", status, VALID_STATUSES)
        clauses.append(Ticket.status == status)
    return and_(*clauses)


def verify(caller_identity: Optional[str], rows: Sequence[Ticket]) -> Sequence[Ticket]:
    identity = require_identity(caller_identity)
    leaked = [row.id for row in rows if not owns(row, identity)]
    if leaked:
        security_logger.error(
            "Ownership check failed: %d of %d rows do not belong to caller %r (ticket ids: %s)",
            len(leaked), len(rows), identity.value, ", ".join(leaked),
        )
        raise IntegrityViolation("Security error: Invalid ticket access detected")
    return rows


def list_owned_tickets(
    db: Session,
    caller_identity: Optional[str],
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Ticket], int]:
    predicate = scope(caller_identity, status)
    logger.debug("Listing tickets for caller %r (status=%s, page=%d, limit=%d)", caller_identity, status, page, limit)

    total = db.query(func.count(Ticket.id)).filter(predicate).scalar() or 0
    rows = (
        db.query(Ticket)
        .filter(predicate)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    verify(caller_identity, rows)
    return rows, total
