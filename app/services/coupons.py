"""Coupon lookup and price computation."""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from app.models.coupon import Coupon

_CODE_RE = re.compile(r"^[A-Z0-9_-]{1,64}$")
_CENT = Decimal("0.01")


class InvalidCouponError(ValueError):
    """Coupon code is malformed or unknown."""


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def find_coupon(db: Session, code: str) -> Coupon:
    """
    Look up a coupon by its uppercased code.

    Raises InvalidCouponError for malformed or unknown codes.
    Usage limits are not checked (see DESIGN.md).
    """
    normalized = normalize_code(code)
    if not _CODE_RE.match(normalized):
        raise InvalidCouponError("Cupom inválido.")

    coupon = db.query(Coupon).filter(Coupon.code == normalized).first()
    if coupon is None:
        raise InvalidCouponError("Cupom inválido ou não encontrado.")
    return coupon


def apply_discount(price, discount_percentage: Optional[int]) -> Decimal:
    """finalPrice = price × (1 − discount/100), rounded to cents."""
    price = Decimal(str(price))
    if not discount_percentage:
        return price.quantize(_CENT, rounding=ROUND_HALF_UP)
    factor = Decimal(1) - Decimal(discount_percentage) / Decimal(100)
    return (price * factor).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_cents(amount) -> int:
    """round(amount × 100) as an integer number of minor units."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
