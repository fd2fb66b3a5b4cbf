"""Resolve the singleton configuration rows with a DB-first, env-fallback strategy."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.integrations.pix import PaymentConfig
from app.models.system_settings import PaymentSettings, WhatsappSettings, SpecialCouponsSettings
from app.services.encryption import decrypt_value

logger = logging.getLogger(__name__)


@dataclass
class WhatsappConfig:
    api_token: str = ""
    welcome_message: str = ""
    sale_notification_message: str = ""
    delivery_message: str = ""
    ticket_notification_message: str = ""


def get_payment_config(db: Session) -> Optional[PaymentConfig]:
    """
    Resolve the active PIX provider and its credentials.

    The admin-saved row wins when it names a provider; otherwise the environment
    (PIX_PROVIDER, PUSHINPAY_API_KEY, AXENPAY_*) is used. Returns None when neither
    names a provider; validation of the credentials is left to the gateway client.
    """
    row = db.query(PaymentSettings).first()
    if row and row.active_provider:
        return PaymentConfig(
            active_provider=row.active_provider,
            pushinpay_api_key=decrypt_value(row.pushinpay_api_key_encrypted),
            axenpay_client_id=row.axenpay_client_id or "",
            axenpay_client_secret=decrypt_value(row.axenpay_client_secret_encrypted),
        )

    if settings.pix_provider:
        return PaymentConfig(
            active_provider=settings.pix_provider,
            pushinpay_api_key=settings.pushinpay_api_key,
            axenpay_client_id=settings.axenpay_client_id,
            axenpay_client_secret=settings.axenpay_client_secret,
        )

    logger.error("Payment config not found in the database or environment")
    return None


def get_whatsapp_config(db: Session) -> WhatsappConfig:
    row = db.query(WhatsappSettings).first()
    if not row:
        return WhatsappConfig(api_token=settings.evolution_api_key)

    return WhatsappConfig(
        api_token=decrypt_value(row.api_token_encrypted) or settings.evolution_api_key,
        welcome_message=row.welcome_message or "",
        sale_notification_message=row.sale_notification_message or "",
        delivery_message=row.delivery_message or "",
        ticket_notification_message=row.ticket_notification_message or "",
    )


def get_abandoned_cart_coupon_code(db: Session) -> Optional[str]:
    row = db.query(SpecialCouponsSettings).first()
    if row and row.abandoned_cart_coupon_code:
        return row.abandoned_cart_coupon_code
    return None
