"""Admin-only endpoints for the singleton configuration rows and the WhatsApp instance."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from datetime import datetime
from sqlalchemy.orm import Session

from app.database import get_db
from app.auth.dependencies import require_admin
from app.config import settings
from app.integrations import evolution
from app.models.pending_message import PendingWhatsappMessage, PendingMessageStatus, PendingMessageType
from app.models.user import User
from app.models.system_settings import PaymentSettings, WhatsappSettings, SpecialCouponsSettings
from app.schemas.system_settings import (
    PaymentSettingsUpdate,
    PaymentSettingsResponse,
    WhatsappSettingsUpdate,
    WhatsappSettingsResponse,
    WhatsappStatusResponse,
    WhatsappConnectResponse,
    SpecialCouponsUpdate,
    SpecialCouponsResponse,
    mask_token,
)
from app.schemas.templates import WhatsappTemplatesOut, WhatsappTemplatesUpdate
from app.services.encryption import encrypt_value, decrypt_value
from app.services.notifications import find_unknown_placeholders, dispatch_pending_messages
from app.services.settings import get_whatsapp_config

router = APIRouter(prefix="/admin/settings", tags=["admin-settings"])


# ---------------------------------------------------------------------------
# configs/payment
# ---------------------------------------------------------------------------

def _payment_response(row: Optional[PaymentSettings]) -> PaymentSettingsResponse:
    if row and row.active_provider:
        return PaymentSettingsResponse(
            active_provider=row.active_provider,
            pushinpay_api_key_masked=mask_token(decrypt_value(row.pushinpay_api_key_encrypted)),
            axenpay_client_id=row.axenpay_client_id or "",
            axenpay_client_secret_masked=mask_token(decrypt_value(row.axenpay_client_secret_encrypted)),
            source="db",
            updated_at=row.updated_at,
        )
    if settings.pix_provider:
        return PaymentSettingsResponse(
            active_provider=settings.pix_provider,
            pushinpay_api_key_masked=mask_token(settings.pushinpay_api_key),
            axenpay_client_id=settings.axenpay_client_id,
            axenpay_client_secret_masked=mask_token(settings.axenpay_client_secret),
            source="env",
        )
    return PaymentSettingsResponse()


@router.get("/payment", response_model=PaymentSettingsResponse)
def get_payment_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Active PIX provider with masked credentials."""
    return _payment_response(db.query(PaymentSettings).first())


@router.put("/payment", response_model=PaymentSettingsResponse)
def update_payment_settings(
    payload: PaymentSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Switch provider / rotate credentials. Omitted or empty secrets keep the stored value."""
    row = db.query(PaymentSettings).first()
    if not row:
        row = PaymentSettings(updated_by=current_user.id)
        db.add(row)

    row.active_provider = payload.active_provider
    if payload.pushinpay_api_key:
        row.pushinpay_api_key_encrypted = encrypt_value(payload.pushinpay_api_key)
    if payload.axenpay_client_id is not None:
        row.axenpay_client_id = payload.axenpay_client_id or None
    if payload.axenpay_client_secret:
        row.axenpay_client_secret_encrypted = encrypt_value(payload.axenpay_client_secret)

    row.updated_by = current_user.id
    db.commit()
    db.refresh(row)
    return _payment_response(row)


# ---------------------------------------------------------------------------
# configs/whatsapp
# ---------------------------------------------------------------------------

@router.get("/whatsapp", response_model=WhatsappSettingsResponse)
def get_whatsapp_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    token = get_whatsapp_config(db).api_token
    return WhatsappSettingsResponse(api_token_masked=mask_token(token), configured=bool(token))


@router.put("/whatsapp", response_model=WhatsappSettingsResponse)
def update_whatsapp_settings(
    payload: WhatsappSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    row = db.query(WhatsappSettings).first()
    if not row:
        row = WhatsappSettings(updated_by=current_user.id)
        db.add(row)

    row.api_token_encrypted = encrypt_value(payload.api_token) if payload.api_token else None
    row.updated_by = current_user.id
    db.commit()

    token = get_whatsapp_config(db).api_token
    return WhatsappSettingsResponse(api_token_masked=mask_token(token), configured=bool(token))


@router.get("/whatsapp/templates", response_model=WhatsappTemplatesOut)
def get_whatsapp_templates(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    config = get_whatsapp_config(db)
    return WhatsappTemplatesOut(
        welcome_message=config.welcome_message,
        sale_notification_message=config.sale_notification_message,
        delivery_message=config.delivery_message,
        ticket_notification_message=config.ticket_notification_message,
    )


@router.put("/whatsapp/templates", response_model=WhatsappTemplatesOut)
def update_whatsapp_templates(
    payload: WhatsappTemplatesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Update templates. Placeholders must belong to the template's message type."""
    changes = payload.model_dump(exclude_none=True)
    for field, text in changes.items():
        message_type = field.removesuffix("_message")
        unknown = find_unknown_placeholders(message_type, text)
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Variáveis inválidas em {field}: {', '.join('{' + v + '}' for v in sorted(unknown))}",
            )

    row = db.query(WhatsappSettings).first()
    if not row:
        row = WhatsappSettings(updated_by=current_user.id)
        db.add(row)
    for field, text in changes.items():
        setattr(row, field, text)
    row.updated_by = current_user.id
    db.commit()

    return get_whatsapp_templates(db, current_user)


@router.get("/whatsapp/status", response_model=WhatsappStatusResponse)
def whatsapp_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        state = evolution.get_instance_status(get_whatsapp_config(db).api_token)
    except evolution.WhatsappGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return WhatsappStatusResponse(state=state)


@router.post("/whatsapp/connect", response_model=WhatsappConnectResponse)
def whatsapp_connect(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """QR code to pair the platform's WhatsApp instance."""
    try:
        result = evolution.connect_instance(get_whatsapp_config(db).api_token)
    except evolution.WhatsappGatewayError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return WhatsappConnectResponse(**result)


class QueueEntryResponse(BaseModel):
    id: int
    type: PendingMessageType
    recipient_phone_number: str
    status: PendingMessageStatus
    attempts: int
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/whatsapp/queue", response_model=List[QueueEntryResponse])
def list_queue(
    status_filter: Optional[PendingMessageStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Queue entries, e.g. ?status_filter=failed for the dead letters."""
    query = db.query(PendingWhatsappMessage)
    if status_filter is not None:
        query = query.filter(PendingWhatsappMessage.status == status_filter)
    return query.order_by(PendingWhatsappMessage.created_at.desc()).limit(200).all()


@router.post("/whatsapp/queue/{message_id}/requeue", response_model=QueueEntryResponse)
def requeue_failed(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Give a failed entry a fresh set of attempts."""
    entry = db.query(PendingWhatsappMessage).filter(PendingWhatsappMessage.id == message_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Mensagem não encontrada")
    if entry.status != PendingMessageStatus.FAILED:
        raise HTTPException(status_code=409, detail="Somente mensagens com falha podem ser reenviadas")

    entry.status = PendingMessageStatus.PENDING
    entry.attempts = 0
    entry.next_attempt_at = None
    entry.last_error = None
    db.commit()
    db.refresh(entry)
    dispatch_pending_messages([entry.id])
    return entry


# ---------------------------------------------------------------------------
# configs/special_coupons
# ---------------------------------------------------------------------------

@router.put("/special-coupons", response_model=SpecialCouponsResponse)
def update_special_coupons(
    payload: SpecialCouponsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Set the coupon offered on abandoned carts (empty clears it)."""
    row = db.query(SpecialCouponsSettings).first()
    if not row:
        row = SpecialCouponsSettings()
        db.add(row)
    code = (payload.abandoned_cart_coupon_code or "").strip().upper()
    row.abandoned_cart_coupon_code = code or None
    db.commit()
    return SpecialCouponsResponse(abandoned_cart_coupon_code=row.abandoned_cart_coupon_code)
