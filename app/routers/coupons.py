"""
Discount coupons - admin only, plus the public abandoned-cart coupon lookup.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.coupon import Coupon
from app.schemas.coupons import CouponCreate, CouponUpdate, CouponResponse
from app.schemas.system_settings import SpecialCouponsResponse
from app.services.settings import get_abandoned_cart_coupon_code
from app.auth.dependencies import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.get("/special", response_model=SpecialCouponsResponse)
def get_special_coupons(db: Session = Depends(get_db)):
    """Coupon the storefront offers to buyers who leave the checkout."""
    return SpecialCouponsResponse(abandoned_cart_coupon_code=get_abandoned_cart_coupon_code(db))


@router.get("", response_model=List[CouponResponse])
def list_coupons(
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    return db.query(Coupon).order_by(Coupon.created_at.desc()).all()


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    if db.query(Coupon).filter(Coupon.code == data.code).first():
        raise HTTPException(status_code=400, detail="Já existe um cupom com este código")

    coupon = Coupon(
        code=data.code,
        discount_percentage=data.discount_percentage,
        usage_limit=data.usage_limit,
        usage_count=0,
    )
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    logger.info("Coupon %s created (%d%%)", coupon.code, coupon.discount_percentage)
    return coupon


@router.patch("/{code}", response_model=CouponResponse)
def update_coupon(
    code: str,
    data: CouponUpdate,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    coupon = db.query(Coupon).filter(Coupon.code == code.upper()).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Cupom não encontrado")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)
    return coupon


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(
    code: str,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    coupon = db.query(Coupon).filter(Coupon.code == code.upper()).first()
    if not coupon:
        raise HTTPException(status_code=404, detail="Cupom não encontrado")
    db.delete(coupon)
    db.commit()
