"""Schemas for the singleton configuration endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


def mask_token(token: str) -> str:
    """Mask an API token: show first 10 chars + ****, or **** if too short."""
    if not token:
        return ""
    if len(token) < 10:
        return "****"
    return token[:10] + "****"


class PaymentSettingsUpdate(BaseModel):
    """Empty secret fields keep the stored value"""
    active_provider: str = Field(..., pattern=r"^(pushinpay|axenpay)$")
    pushinpay_api_key: Optional[str] = None
    axenpay_client_id: Optional[str] = None
    axenpay_client_secret: Optional[str] = None


class PaymentSettingsResponse(BaseModel):
    active_provider: str = ""
    pushinpay_api_key_masked: str = ""
    axenpay_client_id: str = ""
    axenpay_client_secret_masked: str = ""
    source: str = "none"  # db | env | none
    updated_at: Optional[datetime] = None


class WhatsappSettingsUpdate(BaseModel):
    api_token: str


class WhatsappSettingsResponse(BaseModel):
    api_token_masked: str = ""
    configured: bool = False


class WhatsappStatusResponse(BaseModel):
    state: str  # connected | connecting | disconnected


class WhatsappConnectResponse(BaseModel):
    qrcode: str = ""
    pairing_code: str = ""


class SpecialCouponsUpdate(BaseModel):
    abandoned_cart_coupon_code: Optional[str] = Field(None, max_length=64)


class SpecialCouponsResponse(BaseModel):
    abandoned_cart_coupon_code: Optional[str] = None
