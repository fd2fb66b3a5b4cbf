"""Singleton configuration rows (configs/payment, configs/whatsapp, configs/special_coupons)."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .base import Base


class PaymentSettings(Base):
    __tablename__ = "payment_settings"

    id = Column(Integer, primary_key=True, index=True)
    active_provider = Column(String(50), nullable=True)  # pushinpay | axenpay
    pushinpay_api_key_encrypted = Column(Text, nullable=True)
    axenpay_client_id = Column(String(255), nullable=True)
    axenpay_client_secret_encrypted = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    updater = relationship("User", foreign_keys=[updated_by])


class WhatsappSettings(Base):
    __tablename__ = "whatsapp_settings"

    id = Column(Integer, primary_key=True, index=True)
    api_token_encrypted = Column(Text, nullable=True)
    welcome_message = Column(Text, nullable=True)
    sale_notification_message = Column(Text, nullable=True)
    delivery_message = Column(Text, nullable=True)
    ticket_notification_message = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    updater = relationship("User", foreign_keys=[updated_by])


class SpecialCouponsSettings(Base):
    __tablename__ = "special_coupons_settings"

    id = Column(Integer, primary_key=True, index=True)
    abandoned_cart_coupon_code = Column(String(64), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
