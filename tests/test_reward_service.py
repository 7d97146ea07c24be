"""
Tests for loyalty points
"""

import pytest

from src.core.enums import RewardTransactionType
from src.core.errors import InvalidInputError
from src.services.reward_service import RewardService


@pytest.fixture
def rewards(clock):
    return RewardService(clock=clock)


@pytest.mark.asyncio
async def test_add_points(db_session, client_user, rewards):
    """Earning raises balance and lifetime total"""
    txn = await rewards.add_points(db_session, client_user.id, 120, "Order #1", "order", 1)

    reward = await rewards.get_or_create_reward(db_session, client_user.id)
    assert reward.points == 120
    assert reward.total_points_earned == 120
    assert txn.type == RewardTransactionType.EARNED.value
    assert txn.expires_at is None


@pytest.mark.asyncio
async def test_points_must_be_positive(db_session, client_user, rewards):
    """Zero, negative and boolean points are invalid"""
    for points in (0, -5, True):
        with pytest.raises(InvalidInputError):
            await rewards.add_points(db_session, client_user.id, points, "Bad")


@pytest.mark.asyncio
async def test_redeem_points(db_session, client_user, rewards):
    """Redeeming lowers the balance, overspending changes nothing"""
    await rewards.add_points(db_session, client_user.id, 100, "Bonus")

    assert await rewards.redeem_points(db_session, client_user.id, 150, "Too many") is None

    txn = await rewards.redeem_points(db_session, client_user.id, 40, "Discount")
    reward = await rewards.get_or_create_reward(db_session, client_user.id)

    assert txn.type == RewardTransactionType.REDEEMED.value
    assert reward.points == 60
    assert reward.total_points_redeemed == 40


@pytest.mark.asyncio
async def test_expire_points_oldest_first(db_session, client_user, rewards, clock):
    """Only the unredeemed part of lapsed grants expires"""
    await rewards.add_points(db_session, client_user.id, 100, "Promo", expires_in_days=30)
    await rewards.add_points(db_session, client_user.id, 50, "Order #2")
    await rewards.redeem_points(db_session, client_user.id, 30, "Discount")

    assert await rewards.expire_points(db_session, client_user.id) == 0

    clock.advance(days=31)
    expired = await rewards.expire_points(db_session, client_user.id)

    reward = await rewards.get_or_create_reward(db_session, client_user.id)
    assert expired == 70
    assert reward.points == 50
    assert reward.total_points_expired == 70

    assert await rewards.expire_points(db_session, client_user.id) == 0


@pytest.mark.asyncio
async def test_reward_transactions_newest_first(db_session, client_user, rewards):
    """History lists the latest movement first"""
    await rewards.add_points(db_session, client_user.id, 10, "First")
    await rewards.redeem_points(db_session, client_user.id, 5, "Second")

    history = await rewards.get_transactions(db_session, client_user.id)

    assert [t.description for t in history] == ["Second", "First"]
