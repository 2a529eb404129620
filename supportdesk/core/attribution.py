from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from supportdesk.core.config import settings
from supportdesk.core.errors import ValidationError
from supportdesk.core.identity import NativeId, classify, requester_identity
from supportdesk.models.ticket import Ticket, TicketMessage


class SenderType:
    REQUESTER = "requester"
    AGENT = "agent"


@dataclass(frozen=True)
class Author:
    kind: str
    id: Optional[str]
    name: Optional[str]


def resolve_author(
    ticket: Ticket,
    sender_type: Optional[str] = None,
    sender_id: Optional[str] = None,
    sender_name: Optional[str] = None,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Author:
    """
    Work out who wrote a new message on ``ticket``.

    Agents are taken at their word (``sender_id``/``sender_name``). Anything
    that is not explicitly an agent is the requester: a native ``user_id``
    wins, otherwise the ticket's own native requester id is used. Foreign ids
    are never recorded as a sender id.
    """
    if sender_type == SenderType.AGENT:
        return Author(
            kind=SenderType.AGENT,
            id=sender_id or None,
            name=sender_name or settings.DEFAULT_AGENT_NAME,
        )

    author_id = None
    if user_id:
        identity = classify(user_id)
        if isinstance(identity, NativeId):
            author_id = identity.value
    if author_id is None:
        requester = requester_identity(ticket)
        if isinstance(requester, NativeId):
            author_id = requester.value

    return Author(
        kind=SenderType.REQUESTER,
        id=author_id,
        name=user_name or ticket.user_name,
    )


def require_body(message: Optional[str]) -> str:
    if not message or not message.strip():
        raise ValidationError("Message is required")
    return message


def build_message(
    ticket: Ticket,
    message: Optional[str],
    attachments: Optional[List[Dict[str, Any]]] = None,
    **sender: Optional[str],
) -> TicketMessage:
    require_body(message)
    author = resolve_author(ticket, **sender)
    return TicketMessage(
        ticket_id=ticket.id,
        sender_type=author.kind,
        sender_id=author.id,
        sender_name=author.name,
        message=message,
        attachments=list(attachments or []),
    )
