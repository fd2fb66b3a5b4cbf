from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class UserSubscription(Base):
    """One completed purchase, owned by the buyer"""
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    plan_name = Column(String(255), nullable=False)
    service_name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(100), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("Plan")
    ticket = relationship("Ticket", back_populates="user_subscription", uselist=False, cascade="all, delete-orphan")

    @property
    def ticket_id(self):
        return self.ticket.id if self.ticket else None
