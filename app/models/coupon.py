from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func

from .base import Base


class Coupon(Base):
    """Discount coupon keyed by its uppercase code"""
    __tablename__ = "coupons"

    code = Column(String(64), primary_key=True)
    discount_percentage = Column(Integer, nullable=False)
    # 0 = unlimited. Stored for display; redemption does not enforce or increment it.
    usage_limit = Column(Integer, nullable=False, default=0)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("discount_percentage BETWEEN 1 AND 100", name="ck_coupons_discount_range"),
    )
