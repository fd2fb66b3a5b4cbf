import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, JSON
from sqlalchemy.sql import func

from .base import Base


class PendingMessageType(str, enum.Enum):
    WELCOME = "welcome"
    SALE_NOTIFICATION = "sale_notification"
    DELIVERY = "delivery"
    TICKET_NOTIFICATION = "ticket_notification"


class PendingMessageStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"


class PendingWhatsappMessage(Base):
    """
    Outbound WhatsApp queue entry.

    Rows are deleted once sent (or dropped for lack of a template). Entries that
    exhaust their retries stay behind with status=failed.
    """
    __tablename__ = "pending_whatsapp_messages"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(PendingMessageType), nullable=False)
    recipient_phone_number = Column(String(20), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    status = Column(Enum(PendingMessageStatus), nullable=False, default=PendingMessageStatus.PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
