from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from app.models.payment_charge import ChargePurpose, ChargeStatus


class CouponCheckRequest(BaseModel):
    plan_id: int
    coupon_code: str = Field(..., min_length=1, max_length=64)


class PriceQuoteResponse(BaseModel):
    plan_id: int
    coupon_code: Optional[str] = None
    discount_percentage: int = 0
    original_price: Decimal
    final_price: Decimal
    amount_cents: int


class CheckoutRequest(BaseModel):
    plan_id: int
    coupon_code: Optional[str] = Field(None, max_length=64)


class ChargeResponse(BaseModel):
    id: int
    provider: str
    purpose: ChargePurpose
    status: ChargeStatus
    transaction_id: Optional[str] = None
    plan_id: Optional[int] = None
    ticket_id: Optional[int] = None
    coupon_code: Optional[str] = None
    original_price: Decimal
    final_price: Decimal
    amount_cents: int
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    poll_interval_seconds: Optional[int] = None

    class Config:
        from_attributes = True
