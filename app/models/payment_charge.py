import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class ChargePurpose(str, enum.Enum):
    PURCHASE = "purchase"
    RENEWAL = "renewal"


class ChargeStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"  # claimed for fulfilment
    FULFILLED = "fulfilled"
    FULFILLMENT_FAILED = "fulfillment_failed"


class PaymentCharge(Base):
    """A PIX charge issued to a buyer, tracked until its side effects are applied"""
    __tablename__ = "payment_charges"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(255), unique=True, nullable=True, index=True)
    provider = Column(String(50), nullable=False)
    purpose = Column(Enum(ChargePurpose), nullable=False, default=ChargePurpose.PURCHASE)
    status = Column(Enum(ChargeStatus), nullable=False, default=ChargeStatus.PENDING, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(64), nullable=True)
    original_price = Column(Numeric(10, 2), nullable=False)
    final_price = Column(Numeric(10, 2), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    qr_code = Column(Text, nullable=True)
    qr_code_base64 = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", foreign_keys=[user_id])
    plan = relationship("Plan")
    ticket = relationship("Ticket", foreign_keys=[ticket_id])
