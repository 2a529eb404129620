from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session
from supportdesk.core.attribution import build_message, require_body
from supportdesk.core.config import settings
from supportdesk.core.db import get_db
from supportdesk.core.lifecycle import TicketLifecycle
from supportdesk.core.locator import locate
from supportdesk.schemas.common import ERROR_RESPONSES, Envelope, Pagination
from supportdesk.schemas.ticket import (
    MarkReadData,
    MarkReadRequest,
    MessageCreate,
    MessageData,
    MessageListData,
    MessageResponse,
)

router = APIRouter(prefix="/api/v1/support/tickets", tags=["Messages"], responses=ERROR_RESPONSES)


@router.post("/{ref}/messages", response_model=Envelope[MessageData], status_code=status.HTTP_201_CREATED)
def send_message(ref: str, message_in: MessageCreate, db: Session = Depends(get_db)):
    """
    Append a message to a ticket's thread and bump the ticket's ``updated_at``.
    """
    require_body(message_in.message)
    try:
        ticket = locate(db, ref)
        message = build_message(
            ticket,
            message_in.message,
            message_in.attachments,
            sender_type=message_in.sender_type,
            sender_id=message_in.sender_id,
            sender_name=message_in.sender_name,
            user_id=message_in.user_id,
            user_name=message_in.user_name,
        )
        TicketLifecycle(db).append_message(ticket, message)
        db.commit()
        db.refresh(message)
        return Envelope(data=MessageData(message=MessageResponse.model_validate(message)))
    except Exception:
        db.rollback()
        raise


@router.get("/{ref}/messages", response_model=Envelope[MessageListData])
def get_messages(
    ref: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.MESSAGES_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    since: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """
    Page through a ticket's messages, oldest first. ``since`` keeps only
    messages created after that moment.
    """
    ticket = locate(db, ref)
    messages, total = TicketLifecycle(db).list_messages(ticket, page=page, limit=limit, since=since)
    return Envelope(
        data=MessageListData(
            messages=[MessageResponse.model_validate(message) for message in messages],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("/{ref}/messages/read", response_model=Envelope[MarkReadData])
def mark_messages_read(ref: str, request: Optional[MarkReadRequest] = Body(None), db: Session = Depends(get_db)):
    """
    Mark the given messages read, or every agent message when no ids are sent.
    """
    message_ids = request.message_ids if request is not None else None
    try:
        updated = TicketLifecycle(db).mark_messages_read(ref, message_ids)
        db.commit()
        return Envelope(message="Messages marked as read", data=MarkReadData(updated=updated))
    except Exception:
        db.rollback()
        raise
