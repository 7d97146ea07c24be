"""
Wallet and reward points API endpoints
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.schemas import WalletTransactionOut, dump, service_response
from src.core.enums import FailureReason
from src.core.results import ServiceResult
from src.database.engine import get_session
from src.database.models import User
from src.services.reward_service import RewardService
from src.services.wallet_service import WalletService

router = APIRouter(prefix="/wallet", tags=["wallet"])

reward_service = RewardService()


class WalletStatsOut(BaseModel):
    balance: Decimal
    currency: str
    total_credits: Decimal
    total_debits: Decimal
    transaction_count: int


class TopUpRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    external_transaction_id: Optional[str] = None


class RedeemRequest(BaseModel):
    points: int = Field(gt=0)
    description: str = "Points redeemed"


class RewardOut(BaseModel):
    points: int
    total_points_earned: int
    total_points_redeemed: int
    total_points_expired: int


@router.get("", response_model=WalletStatsOut)
async def get_wallet(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Balance and ledger totals (creates the wallet on first access)"""
    stats = await WalletService.get_wallet_statistics(session, user.id)
    return WalletStatsOut(**stats)


@router.post("/top-up")
async def top_up(
    request: TopUpRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    txn = await WalletService.top_up(
        session, user.id, request.amount, request.external_transaction_id
    )
    wallet = await WalletService.get_wallet(session, user.id)
    return service_response(
        ServiceResult.ok("Wallet topped up"),
        {"balance": wallet.balance, "transaction": dump(WalletTransactionOut, txn)},
    )


@router.get("/transactions", response_model=List[WalletTransactionOut])
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    txns = await WalletService.get_transactions(session, user.id, limit)
    return [WalletTransactionOut.model_validate(t) for t in txns]


# ===========================
# REWARD POINTS
# ===========================


@router.get("/rewards", response_model=RewardOut)
async def get_rewards(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Points balance after expiring lapsed grants"""
    await reward_service.expire_points(session, user.id)
    reward = await reward_service.get_or_create_reward(session, user.id)
    await session.commit()
    return RewardOut(
        points=reward.points,
        total_points_earned=reward.total_points_earned,
        total_points_redeemed=reward.total_points_redeemed,
        total_points_expired=reward.total_points_expired,
    )


@router.post("/rewards/redeem")
async def redeem_points(
    request: RedeemRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    txn = await reward_service.redeem_points(session, user.id, request.points, request.description)
    if txn is None:
        return service_response(
            ServiceResult.fail(
                FailureReason.INSUFFICIENT_POINTS,
                "Not enough points",
                requested_points=request.points,
            )
        )
    return service_response(ServiceResult.ok("Points redeemed"), {"points": txn.points})
