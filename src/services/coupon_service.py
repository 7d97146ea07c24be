"""
Coupon Service

Validates and applies discount coupons to orders awaiting payment.
A user can redeem a given coupon once.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import to_money
from src.core.clock import Clock, SystemClock, as_utc
from src.core.enums import CouponDiscountType, FailureReason
from src.core.errors import FieldError, InvalidInputError
from src.core.results import ServiceResult
from src.database.models import Coupon, CouponUsage, Order


def is_valid(coupon: Coupon, now: datetime) -> bool:
    """Active, inside its window and under its usage cap"""
    if not coupon.is_active:
        return False

    starts_at = as_utc(coupon.starts_at)
    if starts_at and now < starts_at:
        return False

    expires_at = as_utc(coupon.expires_at)
    if expires_at and now > expires_at:
        return False

    if coupon.usage_limit and coupon.used_count >= coupon.usage_limit:
        return False

    return True


def calculate_discount(coupon: Coupon, amount) -> Decimal:
    """
    Discount for an order amount

    Percentage discounts are rounded to cents, fixed discounts are capped
    at the amount, and amounts under the minimum get no discount.
    """
    amount = to_money(amount)
    if amount < (coupon.minimum_order_amount or 0):
        return Decimal("0.00")

    if coupon.discount_type == CouponDiscountType.PERCENTAGE.value:
        return to_money(amount * Decimal(coupon.discount_amount) / Decimal(100))

    return to_money(min(Decimal(coupon.discount_amount), amount))


class CouponService:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> Optional[Coupon]:
        result = await session.execute(select(Coupon).where(Coupon.code == code.strip().upper()))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_coupon(
        session: AsyncSession,
        code: str,
        name: str,
        discount_type: CouponDiscountType,
        discount_amount,
        minimum_order_amount=Decimal("0.00"),
        usage_limit: Optional[int] = None,
        starts_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        description: Optional[str] = None,
    ) -> Coupon:
        """
        Create coupon (admin)

        Raises:
            InvalidInputError: bad amounts, window or duplicate code
        """
        discount_type = CouponDiscountType(discount_type)
        discount_amount = to_money(discount_amount)
        errors = []

        if not code or not code.strip():
            errors.append(FieldError("code", "Code is required"))
        if discount_amount <= 0:
            errors.append(FieldError("discount_amount", "Discount must be greater than zero"))
        if discount_type == CouponDiscountType.PERCENTAGE and discount_amount > 100:
            errors.append(FieldError("discount_amount", "Percentage cannot exceed 100"))
        if usage_limit is not None and usage_limit < 1:
            errors.append(FieldError("usage_limit", "Usage limit must be at least 1"))
        if starts_at and expires_at and expires_at <= starts_at:
            errors.append(FieldError("expires_at", "Expiry must be after start"))
        if code and await CouponService.get_by_code(session, code) is not None:
            errors.append(FieldError("code", "Coupon code already exists"))
        if errors:
            raise InvalidInputError(errors)

        coupon = Coupon(
            code=code.strip().upper(),
            name=name,
            description=description,
            discount_type=discount_type.value,
            discount_amount=discount_amount,
            minimum_order_amount=to_money(minimum_order_amount),
            usage_limit=usage_limit,
            used_count=0,
            is_active=True,
            starts_at=starts_at,
            expires_at=expires_at,
        )
        session.add(coupon)
        await session.commit()
        await session.refresh(coupon)

        logger.info(f"Coupon created: {coupon.code}")
        return coupon

    @staticmethod
    async def has_been_used_by(session: AsyncSession, coupon: Coupon, user_id: int) -> bool:
        stmt = select(CouponUsage.id).where(
            CouponUsage.coupon_id == coupon.id, CouponUsage.user_id == user_id
        )
        return (await session.execute(stmt)).first() is not None

    async def validate_code(self, session: AsyncSession, code: str, user_id: int) -> ServiceResult:
        """Check a code for a user without applying it"""
        coupon = await self.get_by_code(session, code)

        if coupon is None:
            return ServiceResult.fail(FailureReason.COUPON_INVALID, "Invalid coupon code")
        if not is_valid(coupon, self.clock.now()):
            return ServiceResult.fail(FailureReason.COUPON_INVALID, "This coupon is not valid")
        if await self.has_been_used_by(session, coupon, user_id):
            return ServiceResult.fail(
                FailureReason.COUPON_ALREADY_USED, "You have already used this coupon"
            )

        return ServiceResult.ok("Coupon is valid", details={"coupon": coupon})

    async def apply_to_order(
        self,
        session: AsyncSession,
        code: str,
        order: Order,
        user_id: int,
    ) -> ServiceResult:
        """
        Redeem a coupon against an order awaiting payment

        Args:
            session: Database session
            code: Coupon code
            order: Target order (placed / waiting_for_payment)
            user_id: Redeeming user

        Returns:
            ServiceResult with details discount / new_price
        """
        if not order.status_enum.requires_payment:
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                "Coupons can only be applied before payment",
                current_status=order.status,
            )

        validation = await self.validate_code(session, code, user_id)
        if not validation.success:
            return validation
        coupon: Coupon = validation.details["coupon"]

        discount = calculate_discount(coupon, order.price)
        if discount <= 0:
            return ServiceResult.fail(
                FailureReason.COUPON_INVALID,
                "Order does not meet the coupon minimum amount",
                minimum_order_amount=coupon.minimum_order_amount,
            )

        try:
            order.price = max(to_money(order.price) - discount, Decimal("0.00"))
            coupon.used_count = coupon.used_count + 1
            session.add(
                CouponUsage(
                    coupon_id=coupon.id,
                    user_id=user_id,
                    order_id=order.id,
                    discount_amount=discount,
                    created_at=self.clock.now(),
                )
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning(f"Coupon {coupon.code} already redeemed by user {user_id}")
            return ServiceResult.fail(
                FailureReason.COUPON_ALREADY_USED, "You have already used this coupon"
            )
        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Applying coupon {code} to order {order.id} failed")
            return ServiceResult.fail(
                FailureReason.INTEGRITY_ERROR, "Coupon could not be applied, please retry"
            )

        logger.info(f"Coupon {coupon.code} applied to order {order.id}: -${discount}")
        return ServiceResult.ok(
            "Coupon applied",
            order=order,
            details={"discount": discount, "new_price": order.price},
        )
