from pydantic import AliasChoices, BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Union
from datetime import datetime

from supportdesk.schemas.common import Pagination


class TicketCreate(BaseModel):
    user_id: Optional[Union[str, int]] = Field(None, description="Caller identity: a native UUID or a foreign platform id.")
    user_name: str = Field(..., min_length=1, description="Requester display name.")
    user_email: str = Field(..., min_length=1, description="Requester email address.")
    user_phone: str = Field(..., min_length=1, description="Requester phone number.")
    subject: str = Field(..., min_length=1, description="Short summary of the issue.")
    description: str = Field(..., min_length=1, description="Full description of the issue.")
    category: Optional[str] = Field(None, description="Optional category label.")
    priority: str = Field("medium", description="One of low, medium, high, urgent.")


class TicketUpdate(BaseModel):
    status: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None


class TicketResponse(BaseModel):
    id: str
    ticket_number: str
    user_id: Optional[str] = None
    user_name: str
    user_email: str
    user_phone: str
    subject: str
    description: str
    status: str
    priority: str
    category: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("metadata_info", "metadata"))
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TicketListItem(TicketResponse):
    unread_message_count: int = 0


class MessageCreate(BaseModel):
    message: Optional[str] = Field(None, description="Message body; must not be blank.")
    attachments: List[Dict[str, Any]] = Field(default_factory=list, description="Attachment descriptors, in order.")
    sender_type: Optional[str] = Field(None, description="'agent' for support staff; anything else is the requester.")
    sender_id: Optional[str] = Field(None, description="Agent identifier.")
    sender_name: Optional[str] = Field(None, description="Agent display name.")
    user_id: Optional[str] = Field(None, description="Requester identity.")
    user_name: Optional[str] = Field(None, description="Requester display name.")


class MessageResponse(BaseModel):
    id: int
    ticket_id: str
    sender_type: str
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    message: str
    attachments: List[Dict[str, Any]] = []
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MarkReadRequest(BaseModel):
    message_ids: Optional[List[int]] = Field(None, description="Messages to mark; omit to mark every agent message.")


class TicketData(BaseModel):
    ticket: TicketResponse


class TicketListData(BaseModel):
    tickets: List[TicketListItem]
    pagination: Pagination


class TicketDetailData(BaseModel):
    ticket: TicketResponse
    messages: List[MessageResponse]


class MessageData(BaseModel):
    message: MessageResponse


class MessageListData(BaseModel):
    messages: List[MessageResponse]
    pagination: Pagination


class MarkReadData(BaseModel):
    updated: int
