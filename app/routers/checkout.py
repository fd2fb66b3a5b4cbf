"""
Checkout endpoints: coupon stage, payment stage and the payment polling tick.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.integrations import pix
from app.models.catalog import Plan
from app.models.payment_charge import PaymentCharge, ChargeStatus
from app.models.user import User, UserRole
from app.schemas.checkout import CouponCheckRequest, PriceQuoteResponse, CheckoutRequest, ChargeResponse
from app.services import checkout
from app.services.coupons import InvalidCouponError
from app.services.notifications import dispatch_pending_messages
from app.auth.dependencies import get_current_user
from app.auth.rate_limiter import coupon_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["Checkout"])


def charge_response(charge: PaymentCharge) -> ChargeResponse:
    response = ChargeResponse.model_validate(charge)
    if charge.status == ChargeStatus.PENDING:
        response.poll_interval_seconds = settings.pix_poll_interval_seconds
    return response


def raise_for_payment_error(e: Exception):
    """Map checkout-layer exceptions to HTTP errors."""
    if isinstance(e, LookupError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidCouponError):
        raise HTTPException(status_code=422, detail=str(e))
    if isinstance(e, pix.PixConfigurationError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if isinstance(e, pix.PixGatewayError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if isinstance(e, checkout.FulfillmentError):
        raise HTTPException(status_code=500, detail=str(e))
    if isinstance(e, checkout.CheckoutError):
        raise HTTPException(status_code=400, detail=str(e))
    raise e


@router.post("/coupon", response_model=PriceQuoteResponse)
def check_coupon(
    data: CouponCheckRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Validate a coupon against a plan and preview the final price."""
    identifier = str(current_user.id)
    if coupon_rate_limiter.is_blocked(identifier):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Muitas tentativas. Tente novamente em {coupon_rate_limiter.window_minutes} minutos.",
        )

    plan = db.query(Plan).filter(Plan.id == data.plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plano não encontrado")

    try:
        price = checkout.quote(db, plan, data.coupon_code)
    except InvalidCouponError as e:
        coupon_rate_limiter.record_failed_attempt(identifier)
        raise HTTPException(status_code=422, detail=str(e))

    return PriceQuoteResponse(
        plan_id=plan.id,
        coupon_code=price.coupon_code,
        discount_percentage=price.discount_percentage,
        original_price=price.original_price,
        final_price=price.final_price,
        amount_cents=price.amount_cents,
    )


@router.post("", response_model=ChargeResponse, status_code=status.HTTP_201_CREATED)
def start_checkout(
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Payment stage. Returns a pending PIX charge to poll, or an already fulfilled
    charge when a 100% coupon was used.
    """
    try:
        outcome = checkout.start_checkout(db, current_user, data.plan_id, data.coupon_code)
    except Exception as e:
        raise_for_payment_error(e)

    dispatch_pending_messages(outcome.queued_message_ids)
    return charge_response(outcome.charge)


@router.get("/charges/{charge_id}", response_model=ChargeResponse)
def poll_charge(
    charge_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One polling tick: asks the provider while pending, fulfils once paid."""
    charge = db.query(PaymentCharge).filter(PaymentCharge.id == charge_id).first()
    if not charge:
        raise HTTPException(status_code=404, detail="Cobrança não encontrada")
    if charge.user_id != current_user.id and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Acesso negado")

    try:
        outcome = checkout.poll_charge(db, charge)
    except Exception as e:
        raise_for_payment_error(e)

    dispatch_pending_messages(outcome.queued_message_ids)
    return charge_response(outcome.charge)
