"""Tests for coupon lookup and price arithmetic."""
from decimal import Decimal

import pytest

from app.services.coupons import InvalidCouponError, apply_discount, find_coupon, normalize_code, to_cents


def test_normalize_code():
    assert normalize_code("  promo10 ") == "PROMO10"
    assert normalize_code(None) == ""


@pytest.mark.parametrize("price,discount,expected", [
    ("30.00", 10, Decimal("27.00")),
    ("30.00", None, Decimal("30.00")),
    ("30.00", 100, Decimal("0.00")),
    ("19.90", 15, Decimal("16.92")),  # 16.915 rounds half up
    ("0.05", 50, Decimal("0.03")),
])
def test_apply_discount(price, discount, expected):
    assert apply_discount(Decimal(price), discount) == expected


def test_to_cents():
    assert to_cents(Decimal("27.00")) == 2700
    assert to_cents(Decimal("16.92")) == 1692
    assert to_cents(29.9) == 2990


class TestFindCoupon:
    def test_case_insensitive(self, db_session, marketplace):
        assert find_coupon(db_session, "promo10").discount_percentage == 10

    @pytest.mark.parametrize("code", ["", "   ", "PROMO 10", "X" * 65, "NAOEXISTE"])
    def test_invalid(self, db_session, marketplace, code):
        with pytest.raises(InvalidCouponError):
            find_coupon(db_session, code)
