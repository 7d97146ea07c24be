"""
CRUD operations for PaperDesk

Plain async lookups shared by services and API routes.
Mutating business operations live in src/services.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import UserRole
from src.core.errors import NotFoundError
from src.database.models import User, Order, Inquiry, Payment

logger = logging.getLogger(__name__)


# ===========================
# USER OPERATIONS
# ===========================


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    """
    Get user by ID

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User model or None
    """
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    name: str,
    role: UserRole = UserRole.CLIENT,
) -> User:
    """
    Create new user

    Args:
        session: Database session
        email: Login email
        name: Display name
        role: client, writer or admin

    Returns:
        Created User model
    """
    user = User(email=email, name=name, role=role.value)
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"User created: {email} ({role.value})")
    return user


async def require_user(session: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


# ===========================
# ORDER OPERATIONS
# ===========================


async def get_order_by_id(session: AsyncSession, order_id: int) -> Optional[Order]:
    return await session.get(Order, order_id)


async def require_order(session: AsyncSession, order_id: int) -> Order:
    """
    Get order by ID or raise NotFoundError

    Args:
        session: Database session
        order_id: Order ID

    Returns:
        Order model
    """
    order = await get_order_by_id(session, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


async def lock_order(session: AsyncSession, order_id: int) -> Order:
    """
    Re-read an order under a row lock

    The identity-map instance is refreshed, so status and price seen
    afterwards are the committed values.
    """
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one()


async def get_latest_completed_payment(
    session: AsyncSession, order_id: int
) -> Optional[Payment]:
    """Most recent completed payment for an order (None if never paid)"""
    stmt = (
        select(Payment)
        .where(Payment.order_id == order_id, Payment.status == "completed")
        .order_by(Payment.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_payments_for_order(session: AsyncSession, order_id: int) -> List[Payment]:
    stmt = select(Payment).where(Payment.order_id == order_id).order_by(Payment.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ===========================
# INQUIRY OPERATIONS
# ===========================


async def get_inquiry_by_id(session: AsyncSession, inquiry_id: int) -> Optional[Inquiry]:
    return await session.get(Inquiry, inquiry_id)


async def require_inquiry(session: AsyncSession, inquiry_id: int) -> Inquiry:
    inquiry = await get_inquiry_by_id(session, inquiry_id)
    if inquiry is None:
        raise NotFoundError("Inquiry", inquiry_id)
    return inquiry


async def get_client_inquiries(session: AsyncSession, client_id: int) -> List[Inquiry]:
    stmt = (
        select(Inquiry)
        .where(Inquiry.client_id == client_id)
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
