"""
Catalog: streaming brands (services), seller plans and the plan's credential stock.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class AccountModel(str, enum.Enum):
    CAPTURED = "Capturada"
    FULL_ACCESS = "Acesso Total"


class DeliverableStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD = "sold"


class SubscriptionService(Base):
    """Streaming brand shown in the catalog (admin managed)"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    long_description = Column(Text, nullable=True)
    logo_url = Column(String(1024), nullable=True)
    banner_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    plans = relationship("Plan", back_populates="service", cascade="all, delete-orphan")


class Plan(Base):
    """A seller's offer for one service"""
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    features = Column(JSON, nullable=False, default=list)
    account_model = Column(Enum(AccountModel), nullable=False, default=AccountModel.CAPTURED)
    user_limit = Column(Integer, nullable=False, default=1)
    stock = Column(Integer, nullable=False, default=0)
    quality = Column(String(50), nullable=True)
    banner_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    service = relationship("SubscriptionService", back_populates="plans")
    seller = relationship("User", back_populates="plans")
    deliverables = relationship("Deliverable", back_populates="plan", cascade="all, delete-orphan")


class Deliverable(Base):
    """One unit of credential content; sold at most once"""
    __tablename__ = "deliverables"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(Enum(DeliverableStatus), nullable=False, default=DeliverableStatus.AVAILABLE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sold_at = Column(DateTime(timezone=True), nullable=True)
    user_subscription_id = Column(Integer, ForeignKey("user_subscriptions.id", ondelete="SET NULL"), nullable=True)

    plan = relationship("Plan", back_populates="deliverables")

    __table_args__ = (
        Index("ix_deliverables_plan_status_created", "plan_id", "status", "created_at"),
    )
