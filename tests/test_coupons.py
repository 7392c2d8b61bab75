"""Tests for coupon arithmetic and usage accounting."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from nekomart import coupons
from nekomart.coupons import Coupon, DiscountType, apply_discount
from nekomart.errors import InvalidState


def coupon(discount, discount_type=DiscountType.PERCENTAGE, usage_limit=0, usage_count=0):
    return Coupon(
        id="c1",
        code="TEST",
        discount=Decimal(str(discount)),
        discount_type=discount_type,
        is_active=True,
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        usage_limit=usage_limit,
        usage_count=usage_count,
    )


class TestApplyDiscount:
    def test_percentage(self):
        assert apply_discount(Decimal("200"), coupon(10)) == Decimal("180.00")
        assert apply_discount(Decimal("50"), coupon(10)) == Decimal("45.00")

    def test_percentage_rounds_to_cents(self):
        assert apply_discount(Decimal("10.01"), coupon(15)) == Decimal("8.51")

    def test_full_percentage_is_zero(self):
        assert apply_discount(Decimal("99.99"), coupon(100)) == Decimal("0.00")

    def test_fixed(self):
        assert apply_discount(Decimal("250"), coupon(100, DiscountType.FIXED)) == Decimal("150.00")

    def test_fixed_floors_at_zero(self):
        assert apply_discount(Decimal("30"), coupon(50, DiscountType.FIXED)) == Decimal("0.00")


class TestCouponState:
    def test_unlimited_never_exhausted(self):
        assert not coupon(10, usage_limit=0, usage_count=1000).is_exhausted

    def test_exhausted_at_limit(self):
        assert coupon(10, usage_limit=3, usage_count=3).is_exhausted
        assert not coupon(10, usage_limit=3, usage_count=2).is_exhausted


class TestRedeemable:
    def test_unknown_code_is_ignored(self, db):
        assert db.run(lambda s: coupons.get_redeemable(s, "NOPE")) is None

    def test_inactive_is_ignored(self, db):
        db.add_coupon("OFF", 10, is_active=False)
        assert db.run(lambda s: coupons.get_redeemable(s, "OFF")) is None

    def test_expired_is_ignored(self, db):
        db.add_coupon("OLD", 10, expires_in=timedelta(days=-1))
        assert db.run(lambda s: coupons.get_redeemable(s, "OLD")) is None

    def test_exhausted(self, db):
        db.add_coupon("USED", 10, usage_limit=2, usage_count=2)
        with pytest.raises(InvalidState, match="usage limit exceeded"):
            db.run(lambda s: coupons.get_redeemable(s, "USED"))

    def test_redeemable(self, db):
        db.add_coupon("SAVE10", 10)
        found = db.run(lambda s: coupons.get_redeemable(s, "SAVE10"))
        assert found.discount_type is DiscountType.PERCENTAGE
        assert found.discount == Decimal("10")


class TestRedeem:
    def test_increments(self, db):
        coupon_id = db.add_coupon("SAVE10", 10)

        async def redeem_twice(session):
            await coupons.redeem(session, coupon_id)
            await coupons.redeem(session, coupon_id)
            await session.commit()

        db.run(redeem_twice)
        assert db.coupon_usage("SAVE10") == 2

    def test_stops_at_limit(self, db):
        coupon_id = db.add_coupon("LIMITED", 10, usage_limit=1)

        async def redeem_once(session):
            await coupons.redeem(session, coupon_id)
            await session.commit()

        db.run(redeem_once)
        with pytest.raises(InvalidState, match="usage limit exceeded"):
            db.run(redeem_once)
        assert db.coupon_usage("LIMITED") == 1
