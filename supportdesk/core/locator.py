from sqlalchemy.orm import Session

from supportdesk.core.errors import NotFound
from supportdesk.core.identity import NativeId, classify
from supportdesk.models.ticket import Ticket


def locate(db: Session, ref: str, for_update: bool = False) -> Ticket:
    """
    Resolve a ticket reference to its row.

    A native-shaped ``ref`` is looked up by primary key, anything else by
    ticket number. Only one lookup is ever attempted.
    """
    if not ref:
        raise NotFound("Ticket not found")

    target = classify(ref)
    query = db.query(Ticket)
    if isinstance(target, NativeId):
        query = query.filter(Ticket.id == target.value)
    else:
        query = query.filter(Ticket.ticket_number == target.value)
    if for_update:
        query = query.with_for_update()

    ticket = query.first()
    if ticket is None:
        raise NotFound("Ticket not found", error={"ref": ref})
    return ticket
