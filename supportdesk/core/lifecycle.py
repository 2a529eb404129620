from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from supportdesk.core.attribution import SenderType
from supportdesk.core.errors import ValidationError
from supportdesk.core.locator import locate
from supportdesk.models.ticket import Ticket, TicketMessage


class TicketStatus:
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority:
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


VALID_STATUSES = [TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED]
VALID_PRIORITIES = [TicketPriority.LOW, TicketPriority.MEDIUM, TicketPriority.HIGH, TicketPriority.URGENT]

# Nullable fields: an explicit null clears them.
CLEARABLE_FIELDS = ("assigned_to", "assigned_to_name", "category")


def validate_choice(field: str, value: str, allowed: Sequence[str]) -> str:
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(allowed)}",
            error={"field": field, "value": value, "allowed": list(allowed)},
        )
    return value


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class TicketLifecycle:
    """
    Mutations on tickets and their messages.

    Methods work inside the caller's transaction and do NOT commit; the
    caller commits or rolls back.
    """

    def __init__(self, db: Session):
        self.db = db

    def collect_changes(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}

        status = fields.get("status")
        if status:
            changes["status"] = validate_choice("status", status, VALID_STATUSES)

        for key in CLEARABLE_FIELDS:
            if key in fields:
                changes[key] = fields[key]

        priority = fields.get("priority")
        if priority:
            changes["priority"] = validate_choice("priority", priority, VALID_PRIORITIES)

        if not changes:
            raise ValidationError(
                "No fields to update. Provide at least one: status, assigned_to, assigned_to_name, category, or priority"
            )
        return changes

    def update(self, ref: str, fields: Dict[str, Any]) -> Ticket:
        """
        Apply a partial update. Resolution and closure stamps are only ever
        set, never cleared, so they survive later status changes.
        """
        changes = self.collect_changes(fields)
        ticket = locate(self.db, ref, for_update=True)

        now = datetime.utcnow()
        for key, value in changes.items():
            setattr(ticket, key, value)

        if changes.get("status") == TicketStatus.RESOLVED:
            ticket.resolved_at = now
        elif changes.get("status") == TicketStatus.CLOSED:
            ticket.closed_at = now
        ticket.updated_at = now

        self.db.flush()
        return ticket

    def append_message(self, ticket: Ticket, message: TicketMessage) -> TicketMessage:
        self.db.add(message)
        ticket.updated_at = datetime.utcnow()
        self.db.flush()
        return message

    def mark_messages_read(self, ref: str, message_ids: Optional[Iterable[int]] = None) -> int:
        """
        Mark messages read. Explicit ids are marked exactly; without ids only
        agent-authored messages are touched.
        """
        ticket = locate(self.db, ref)
        ids = list(message_ids or [])

        stmt = update(TicketMessage).where(TicketMessage.ticket_id == ticket.id)
        if ids:
            stmt = stmt.where(TicketMessage.id.in_(ids))
        else:
            stmt = stmt.where(TicketMessage.sender_type == SenderType.AGENT)
        stmt = stmt.values(is_read=True, read_at=datetime.utcnow()).execution_options(synchronize_session=False)

        result = self.db.execute(stmt)
        return result.rowcount

    def list_messages(
        self,
        ticket: Ticket,
        page: int = 1,
        limit: Optional[int] = 50,
        since: Optional[datetime] = None,
    ) -> Tuple[List[TicketMessage], int]:
        query = self.db.query(TicketMessage).filter(TicketMessage.ticket_id == ticket.id)
        if since is not None:
            query = query.filter(TicketMessage.created_at > to_naive_utc(since))

        total = query.count()
        query = query.order_by(TicketMessage.created_at.asc(), TicketMessage.id.asc())
        if limit is not None:
            query = query.offset((page - 1) * limit).limit(limit)
        return query.all(), total

    def unread_agent_counts(self, ticket_ids: Sequence[str]) -> Dict[str, int]:
        """Unread agent-message counts for a page of tickets, in one grouped query."""
        if not ticket_ids:
            return {}
        rows = (
            self.db.query(TicketMessage.ticket_id, func.count(TicketMessage.id))
            .filter(
                TicketMessage.ticket_id.in_(list(ticket_ids)),
                TicketMessage.is_read.is_(False),
                TicketMessage.sender_type == SenderType.AGENT,
            )
            .group_by(TicketMessage.ticket_id)
            .all()
        )
        return {ticket_id: count for ticket_id, count in rows}
