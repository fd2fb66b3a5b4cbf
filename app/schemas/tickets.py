from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.ticket import MessageType, TicketStatus
from app.schemas.users import PresenceResponse


class TicketSummary(BaseModel):
    id: int
    user_subscription_id: int
    customer_id: int
    customer_name: str
    seller_id: int
    seller_name: str
    plan_id: Optional[int] = None
    service_name: str
    plan_name: str
    status: TicketStatus
    needs_manual_delivery: bool
    last_message_text: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_by_seller_count: int
    unread_by_customer_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class TicketDetail(TicketSummary):
    viewer_role: str
    subscription_end_date: Optional[datetime] = None
    is_expired: bool
    has_pending_media_request: bool
    counterpart_presence: Optional[PresenceResponse] = None


class MessageCreate(BaseModel):
    text: str = Field("", max_length=5000)
    type: MessageType = MessageType.TEXT
    payload: Optional[str] = Field(None, description="data:image/...;base64,... para media_response")


class MessageResponse(BaseModel):
    id: int
    ticket_id: int
    sender_id: Optional[int] = None
    sender_name: str
    text: str
    type: MessageType
    payload: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
