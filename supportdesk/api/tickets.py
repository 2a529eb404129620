import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from supportdesk.api.deps import body_user_id
from supportdesk.core.config import settings
from supportdesk.core.db import get_db
from supportdesk.core.errors import NotFound
from supportdesk.core.identity import ForeignId, classify, project_identity
from supportdesk.core.lifecycle import TicketLifecycle, TicketStatus, VALID_PRIORITIES, validate_choice
from supportdesk.core.locator import locate
from supportdesk.core.numbering import create_with_ticket_number
from supportdesk.core.ownership import is_owned_by, list_owned_tickets
from supportdesk.models.ticket import Ticket
from supportdesk.schemas.common import ERROR_RESPONSES, Envelope, Pagination
from supportdesk.schemas.ticket import (
    MessageResponse,
    TicketCreate,
    TicketData,
    TicketDetailData,
    TicketListData,
    TicketListItem,
    TicketResponse,
    TicketUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/support/tickets", tags=["Tickets"], responses=ERROR_RESPONSES)


@router.post("", response_model=Envelope[TicketData], status_code=status.HTTP_201_CREATED)
def create_ticket(
    ticket_in: TicketCreate,
    caller: str = Depends(body_user_id),
    db: Session = Depends(get_db),
):
    """
    Open a new support ticket for the calling user.

    Native user ids go to ``user_id``; any other identity (e.g. a Shopify
    customer gid) is kept under ``metadata.original_user_id`` so the ticket
    can still be listed for that caller later.
    """
    validate_choice("priority", ticket_in.priority, VALID_PRIORITIES)

    identity = classify(caller)
    if isinstance(identity, ForeignId):
        logger.info("user_id %r is not a native id, storing it in metadata", identity.value)
    user_id, metadata_info = project_identity(identity)

    def build(ticket_number: str) -> Ticket:
        return Ticket(
            ticket_number=ticket_number,
            user_id=user_id,
            user_name=ticket_in.user_name,
            user_email=ticket_in.user_email,
            user_phone=ticket_in.user_phone,
            subject=ticket_in.subject,
            description=ticket_in.description,
            status=TicketStatus.OPEN,
            priority=ticket_in.priority,
            category=ticket_in.category or None,
            metadata_info=metadata_info,
        )

    ticket = create_with_ticket_number(db, build)
    logger.info("Created ticket %s (%s)", ticket.ticket_number, ticket.id)
    return Envelope(data=TicketData(ticket=TicketResponse.model_validate(ticket)))


@router.get("", response_model=Envelope[TicketListData])
def get_tickets(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.TICKETS_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    db: Session = Depends(get_db),
):
    """
    List the caller's tickets, newest first, with unread agent-message counts.
    """
    tickets, total = list_owned_tickets(db, user_id, status=status, page=page, limit=limit)
    unread = TicketLifecycle(db).unread_agent_counts([ticket.id for ticket in tickets])

    items = [
        TicketListItem.model_validate(ticket).model_copy(update={"unread_message_count": unread.get(ticket.id, 0)})
        for ticket in tickets
    ]
    return Envelope(data=TicketListData(tickets=items, pagination=Pagination.build(page, limit, total)))


@router.get("/{ref}", response_model=Envelope[TicketDetailData])
def get_ticket(ref: str, user_id: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Retrieve a ticket by id or ticket number, with its full message thread.

    When ``user_id`` is given the ticket must belong to that caller; a ticket
    owned by someone else is reported as not found.
    """
    ticket = locate(db, ref)
    if user_id is not None and not is_owned_by(ticket, user_id):
        raise NotFound("Ticket not found", error={"ref": ref})

    messages, _ = TicketLifecycle(db).list_messages(ticket, page=1, limit=None)
    return Envelope(
        data=TicketDetailData(
            ticket=TicketResponse.model_validate(ticket),
            messages=[MessageResponse.model_validate(message) for message in messages],
        )
    )


@router.patch("/{ref}", response_model=Envelope[TicketData])
def update_ticket(ref: str, update_data: TicketUpdate, db: Session = Depends(get_db)):
    """
    Partially update status, assignment, category or priority.
    """
    try:
        ticket = TicketLifecycle(db).update(ref, update_data.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(ticket)
        return Envelope(data=TicketData(ticket=TicketResponse.model_validate(ticket)))
    except Exception:
        db.rollback()
        raise
