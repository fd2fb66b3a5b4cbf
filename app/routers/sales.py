"""
Sales listings (admin all, seller own, buyer purchases) and the admin recovery
action for paid-but-unfulfilled charges.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.catalog import Plan
from app.models.payment_charge import PaymentCharge, ChargeStatus
from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.schemas.checkout import ChargeResponse
from app.schemas.sales import SaleResponse
from app.services import checkout
from app.services.notifications import dispatch_pending_messages
from app.auth.dependencies import get_current_user, require_admin, require_seller
from app.routers.checkout import charge_response, raise_for_payment_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sales"])


@router.get("/purchases/mine", response_model=List[SaleResponse])
def my_purchases(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(UserSubscription)
        .filter(UserSubscription.user_id == current_user.id)
        .order_by(UserSubscription.created_at.desc())
        .all()
    )


@router.get("/sales/mine", response_model=List[SaleResponse])
def my_sales(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_seller),
):
    return (
        db.query(UserSubscription)
        .join(Plan, UserSubscription.plan_id == Plan.id)
        .filter(Plan.seller_id == current_user.id)
        .order_by(UserSubscription.created_at.desc())
        .all()
    )


@router.get("/admin/sales", response_model=List[SaleResponse])
def all_sales(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    return db.query(UserSubscription).order_by(UserSubscription.created_at.desc()).all()


@router.get("/admin/sales/charges", response_model=List[ChargeResponse])
def list_charges(
    status_filter: Optional[ChargeStatus] = None,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    """Charges, e.g. ?status_filter=fulfillment_failed for paid orders needing attention."""
    query = db.query(PaymentCharge)
    if status_filter is not None:
        query = query.filter(PaymentCharge.status == status_filter)
    return [charge_response(c) for c in query.order_by(PaymentCharge.created_at.desc()).limit(200).all()]


@router.post("/admin/sales/charges/{charge_id}/retry-fulfillment", response_model=ChargeResponse)
def retry_fulfillment(
    charge_id: int,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    charge = db.query(PaymentCharge).filter(PaymentCharge.id == charge_id).first()
    if not charge:
        raise HTTPException(status_code=404, detail="Cobrança não encontrada")

    try:
        outcome = checkout.retry_fulfillment(db, charge)
    except checkout.CheckoutError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise_for_payment_error(e)

    logger.info("Charge %s fulfilment retried by admin", charge_id)
    dispatch_pending_messages(outcome.queued_message_ids)
    return charge_response(outcome.charge)
