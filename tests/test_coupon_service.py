"""
Tests for discount coupons
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from src.core.enums import CouponDiscountType, FailureReason, OrderStatus
from src.core.errors import InvalidInputError
from src.database.models import Coupon
from src.services.coupon_service import CouponService, calculate_discount, is_valid


def make_coupon(**overrides) -> Coupon:
    fields = {
        "code": "TEST",
        "name": "Test coupon",
        "discount_type": CouponDiscountType.PERCENTAGE.value,
        "discount_amount": Decimal("10.00"),
        "minimum_order_amount": Decimal("0.00"),
        "usage_limit": None,
        "used_count": 0,
        "is_active": True,
        "starts_at": None,
        "expires_at": None,
    }
    fields.update(overrides)
    return Coupon(**fields)


@pytest.fixture
def coupons(clock):
    return CouponService(clock=clock)


# ============================================================================
# PURE RULES
# ============================================================================


def test_percentage_discount():
    """10% of $72.00"""
    assert calculate_discount(make_coupon(), Decimal("72.00")) == Decimal("7.20")


def test_fixed_discount_capped_at_amount():
    """A $100 coupon on a $72 order discounts $72"""
    coupon = make_coupon(discount_type="fixed", discount_amount=Decimal("100.00"))
    assert calculate_discount(coupon, Decimal("72.00")) == Decimal("72.00")


def test_discount_below_minimum():
    """Orders under the minimum get nothing"""
    coupon = make_coupon(minimum_order_amount=Decimal("100.00"))
    assert calculate_discount(coupon, Decimal("72.00")) == Decimal("0.00")


def test_is_valid_window_and_cap(clock):
    """Inactive, not started, expired and exhausted coupons are invalid"""
    now = clock.now()

    assert is_valid(make_coupon(), now)
    assert not is_valid(make_coupon(is_active=False), now)
    assert not is_valid(make_coupon(starts_at=now + timedelta(days=1)), now)
    assert not is_valid(make_coupon(expires_at=now - timedelta(seconds=1)), now)
    assert not is_valid(make_coupon(usage_limit=1, used_count=1), now)
    assert is_valid(make_coupon(usage_limit=2, used_count=1), now)


# ============================================================================
# CREATION AND REDEMPTION
# ============================================================================


@pytest.mark.asyncio
async def test_create_coupon(db_session):
    """Codes are stored upper-case and must be unique"""
    coupon = await CouponService.create_coupon(
        db_session, " welcome10 ", "Welcome", CouponDiscountType.PERCENTAGE, Decimal("10")
    )
    assert coupon.code == "WELCOME10"
    assert coupon.used_count == 0

    with pytest.raises(InvalidInputError) as exc_info:
        await CouponService.create_coupon(
            db_session, "WELCOME10", "Again", CouponDiscountType.FIXED, Decimal("5")
        )
    assert [e.field for e in exc_info.value.errors] == ["code"]


@pytest.mark.asyncio
async def test_create_coupon_validation(db_session):
    """Percentages over 100 and non-positive amounts are rejected"""
    with pytest.raises(InvalidInputError):
        await CouponService.create_coupon(
            db_session, "HUGE", "Huge", CouponDiscountType.PERCENTAGE, Decimal("150")
        )
    with pytest.raises(InvalidInputError):
        await CouponService.create_coupon(
            db_session, "FREE", "Free", CouponDiscountType.FIXED, Decimal("0")
        )


@pytest.mark.asyncio
async def test_apply_coupon(db_session, client_user, make_order, coupons):
    """Applying lowers the price once per user"""
    await CouponService.create_coupon(
        db_session, "WELCOME10", "Welcome", CouponDiscountType.PERCENTAGE, Decimal("10")
    )
    order = await make_order(price=Decimal("72.00"))

    result = await coupons.apply_to_order(db_session, "welcome10", order, client_user.id)

    assert result.success is True
    assert result.details["discount"] == Decimal("7.20")
    assert result.details["new_price"] == Decimal("64.80")
    assert order.price == Decimal("64.80")

    again = await coupons.apply_to_order(db_session, "WELCOME10", order, client_user.id)
    assert again.reason == FailureReason.COUPON_ALREADY_USED
    assert order.price == Decimal("64.80")

    coupon = await coupons.get_by_code(db_session, "welcome10")
    assert coupon.used_count == 1


@pytest.mark.asyncio
async def test_apply_coupon_after_payment(db_session, client_user, make_order, coupons):
    """Paid orders cannot be discounted"""
    await CouponService.create_coupon(
        db_session, "LATE", "Late", CouponDiscountType.FIXED, Decimal("5")
    )
    order = await make_order(status=OrderStatus.ACTIVE)

    result = await coupons.apply_to_order(db_session, "LATE", order, client_user.id)

    assert result.reason == FailureReason.INVALID_STATUS
    assert result.message == "Coupons can only be applied before payment"


@pytest.mark.asyncio
async def test_apply_unknown_or_expired_coupon(db_session, client_user, make_order, coupons, clock):
    """Unknown and expired codes are invalid"""
    await CouponService.create_coupon(
        db_session,
        "OLD",
        "Old",
        CouponDiscountType.FIXED,
        Decimal("5"),
        expires_at=clock.now() - timedelta(days=1),
    )
    order = await make_order()

    unknown = await coupons.apply_to_order(db_session, "NOPE", order, client_user.id)
    expired = await coupons.apply_to_order(db_session, "OLD", order, client_user.id)

    assert unknown.reason == FailureReason.COUPON_INVALID
    assert unknown.message == "Invalid coupon code"
    assert expired.reason == FailureReason.COUPON_INVALID
    assert expired.message == "This coupon is not valid"
    assert order.price == Decimal("72.00")


@pytest.mark.asyncio
async def test_apply_coupon_below_minimum(db_session, client_user, make_order, coupons):
    """The order must reach the coupon minimum"""
    await CouponService.create_coupon(
        db_session,
        "BIG",
        "Big orders",
        CouponDiscountType.FIXED,
        Decimal("10"),
        minimum_order_amount=Decimal("100.00"),
    )
    order = await make_order(price=Decimal("72.00"))

    result = await coupons.apply_to_order(db_session, "BIG", order, client_user.id)

    assert result.reason == FailureReason.COUPON_INVALID
    assert result.message == "Order does not meet the coupon minimum amount"


@pytest.mark.asyncio
async def test_usage_limit(db_session, client_user, other_client, make_order, coupons):
    """An exhausted coupon is invalid for everyone else"""
    await CouponService.create_coupon(
        db_session, "ONCE", "Single use", CouponDiscountType.FIXED, Decimal("5"), usage_limit=1
    )
    mine = await make_order()
    theirs = await make_order(client=other_client)

    assert (await coupons.apply_to_order(db_session, "ONCE", mine, client_user.id)).success
    result = await coupons.apply_to_order(db_session, "ONCE", theirs, other_client.id)

    assert result.reason == FailureReason.COUPON_INVALID
    assert theirs.price == Decimal("72.00")
