import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class MessageType(str, enum.Enum):
    TEXT = "text"
    MEDIA_REQUEST = "media_request"
    MEDIA_RESPONSE = "media_response"


class Ticket(Base):
    """Per-purchase conversation between buyer and seller"""
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_subscription_id = Column(
        Integer, ForeignKey("user_subscriptions.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_name = Column(String(255), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    service_name = Column(String(255), nullable=False)
    plan_name = Column(String(255), nullable=False)
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.OPEN)
    needs_manual_delivery = Column(Boolean, nullable=False, default=False)
    last_message_text = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    unread_by_seller_count = Column(Integer, nullable=False, default=0)
    unread_by_customer_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user_subscription = relationship("UserSubscription", back_populates="ticket")
    customer = relationship("User", foreign_keys=[customer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    messages = relationship(
        "ChatMessage", back_populates="ticket", cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sender_name = Column(String(255), nullable=False)
    text = Column(Text, nullable=False, default="")
    type = Column(Enum(MessageType), nullable=False, default=MessageType.TEXT)
    payload = Column(Text, nullable=True)  # data URL for media responses
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    ticket = relationship("Ticket", back_populates="messages")
