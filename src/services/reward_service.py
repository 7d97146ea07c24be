# coding: utf-8
"""
Reward Points Service

Loyalty points account per user.

Features:
- Earn / redeem with lifetime totals
- Balance never goes negative (redeem returns None instead)
- Expiry of dated points, oldest points consumed first
"""

from datetime import timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.clock import Clock, SystemClock
from src.core.enums import RewardTransactionType
from src.core.errors import InvalidInputError
from src.database.models import Reward, RewardTransaction


def _positive_points(points: int) -> int:
    if not isinstance(points, int) or isinstance(points, bool) or points <= 0:
        raise InvalidInputError.single("points", "Points must be a positive integer")
    return points


class RewardService:
    """Service for loyalty points"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    @staticmethod
    async def get_or_create_reward(session: AsyncSession, user_id: int) -> Reward:
        """
        Get or create reward account for user

        Args:
            session: Database session
            user_id: User ID

        Returns:
            Reward model
        """
        stmt = (
            select(Reward)
            .where(Reward.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        reward = (await session.execute(stmt)).scalar_one_or_none()

        if reward is None:
            reward = Reward(
                user_id=user_id,
                points=0,
                total_points_earned=0,
                total_points_redeemed=0,
                total_points_expired=0,
            )
            session.add(reward)
            await session.flush()
            logger.info(f"Created reward account for user {user_id}")

        return reward

    async def add_points(
        self,
        session: AsyncSession,
        user_id: int,
        points: int,
        description: str,
        source_type: Optional[str] = None,
        source_id: Optional[int] = None,
        expires_in_days: Optional[int] = None,
    ) -> RewardTransaction:
        """
        Award points to user

        Args:
            session: Database session
            user_id: User ID
            points: Points to add (> 0)
            description: Human-readable description
            source_type: order, referral, bonus, ...
            source_id: Order the points came from
            expires_in_days: Days until these points expire

        Returns:
            Earned RewardTransaction
        """
        points = _positive_points(points)
        reward = await self.get_or_create_reward(session, user_id)

        now = self.clock.now()
        reward.points += points
        reward.total_points_earned += points

        txn = RewardTransaction(
            user_id=user_id,
            type=RewardTransactionType.EARNED.value,
            points=points,
            description=description,
            source_type=source_type,
            source_id=source_id,
            expires_at=now + timedelta(days=expires_in_days) if expires_in_days else None,
            created_at=now,
        )
        session.add(txn)
        await session.commit()

        logger.info(f"User {user_id} earned {points} points ({description}), balance={reward.points}")
        return txn

    async def redeem_points(
        self,
        session: AsyncSession,
        user_id: int,
        points: int,
        description: str,
    ) -> Optional[RewardTransaction]:
        """
        Spend points

        Returns:
            Redeemed RewardTransaction, None if the balance is too low
        """
        points = _positive_points(points)
        reward = await self.get_or_create_reward(session, user_id)

        if reward.points < points:
            logger.warning(
                f"User {user_id} cannot redeem {points} points (has {reward.points})"
            )
            await session.commit()
            return None

        reward.points -= points
        reward.total_points_redeemed += points

        txn = RewardTransaction(
            user_id=user_id,
            type=RewardTransactionType.REDEEMED.value,
            points=points,
            description=description,
            created_at=self.clock.now(),
        )
        session.add(txn)
        await session.commit()

        logger.info(f"User {user_id} redeemed {points} points, balance={reward.points}")
        return txn

    async def expire_points(self, session: AsyncSession, user_id: int) -> int:
        """
        Expire points whose expiry date has passed

        Redemptions and earlier expiries are assumed to have consumed the
        oldest points first, so only the unconsumed part of the expired
        grants is removed.

        Returns:
            Number of points expired
        """
        reward = await self.get_or_create_reward(session, user_id)
        now = self.clock.now()

        stmt = select(func.coalesce(func.sum(RewardTransaction.points), 0)).where(
            RewardTransaction.user_id == user_id,
            RewardTransaction.type == RewardTransactionType.EARNED.value,
            RewardTransaction.expires_at.is_not(None),
            RewardTransaction.expires_at <= now,
        )
        lapsed = int((await session.execute(stmt)).scalar_one())

        consumed = reward.total_points_redeemed + reward.total_points_expired
        to_expire = min(max(lapsed - consumed, 0), reward.points)

        if to_expire == 0:
            await session.commit()
            return 0

        reward.points -= to_expire
        reward.total_points_expired += to_expire
        session.add(
            RewardTransaction(
                user_id=user_id,
                type=RewardTransactionType.EXPIRED.value,
                points=to_expire,
                description="Points expired",
                created_at=now,
            )
        )
        await session.commit()

        logger.info(f"Expired {to_expire} points for user {user_id}, balance={reward.points}")
        return to_expire

    @staticmethod
    async def get_transactions(
        session: AsyncSession, user_id: int, limit: int = 50
    ) -> List[RewardTransaction]:
        stmt = (
            select(RewardTransaction)
            .where(RewardTransaction.user_id == user_id)
            .order_by(RewardTransaction.id.desc())
            .limit(limit)
        )
        return list((await session.execute(stmt)).scalars().all())
