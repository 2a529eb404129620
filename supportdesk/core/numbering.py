import logging
import re
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from supportdesk.core.config import settings
from supportdesk.core.errors import StorageError
from supportdesk.models.ticket import Ticket

logger = logging.getLogger(__name__)

TICKET_NUMBER_PREFIX = "TKT"
TRAILING_DIGITS = re.compile(r"(\d+)$")


def year_prefix(year: int) -> str:
    return f"{TICKET_NUMBER_PREFIX}-{year}-"


def format_ticket_number(year: int, sequence: int) -> str:
    return f"{year_prefix(year)}{sequence:06d}"


def next_ticket_number(db: Session, year: int) -> str:
    """
    Derive the next ticket number for ``year`` from the highest one issued so far.

    Longer suffixes sort after shorter ones, so ordering by length first keeps
    the comparison numeric once the sequence outgrows six digits.
    """
    prefix = year_prefix(year)
    latest = (
        db.query(Ticket.ticket_number)
        .filter(Ticket.ticket_number.like(f"{prefix}%"))
        .order_by(func.length(Ticket.ticket_number).desc(), Ticket.ticket_number.desc())
        .limit(1)
        .scalar()
    )
    current = 0
    if latest:
        match = TRAILING_DIGITS.search(latest)
        if match:
            current = int(match.group(1))
    return format_ticket_number(year, current + 1)


def create_with_ticket_number(
    db: Session,
    build: Callable[[str], Ticket],
    year: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> Ticket:
    """
    Allocate a ticket number and insert the ticket built for it, atomically.

    The unique constraint on ``tickets.ticket_number`` catches a concurrent
    creator that took the same number between our read and our insert; the
    transaction is then rolled back and the allocation runs again.
    Commits on success.
    """
    year = year or datetime.utcnow().year
    attempts = max_attempts or settings.TICKET_NUMBER_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        number = next_ticket_number(db, year)
        ticket = build(number)
        db.add(ticket)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning("Ticket number %s already taken (attempt %d/%d): %s", number, attempt, attempts, exc.orig)
            continue
        db.refresh(ticket)
        return ticket

    raise StorageError(
        "Failed to allocate a ticket number",
        error=f"gave up after {attempts} conflicting attempts for year {year}",
    )
