import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON, Boolean
from sqlalchemy.orm import relationship
from supportdesk.core.db import Base


def new_ticket_id() -> str:
    return str(uuid.uuid4())


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=new_ticket_id)
    ticket_number = Column(String(32), nullable=False, unique=True, index=True)

    # Native requester identity. Foreign identities live in metadata_info instead.
    user_id = Column(String(36), nullable=True, index=True)
    user_name = Column(String(255), nullable=False)
    user_email = Column(String(255), nullable=False)
    user_phone = Column(String(64), nullable=False)

    subject = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="open", index=True)
    priority = Column(String(32), nullable=False, default="medium")
    category = Column(String(100), nullable=True)
    assigned_to = Column(String(255), nullable=True, index=True)
    assigned_to_name = Column(String(255), nullable=True)

    # {"original_user_id": ...} for requesters without a native identity
    metadata_info = Column("metadata", JSON(none_as_null=True), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    messages = relationship(
        "TicketMessage",
        back_populates="ticket",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TicketMessage(Base):
    __tablename__ = "ticket_messages"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_type = Column(String(20), nullable=False)
    sender_id = Column(String(255), nullable=True)
    sender_name = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    ticket = relationship("Ticket", back_populates="messages")
