"""
Payment API endpoints

Settles orders from the wallet, through the external gateway, or both.
"""

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.orders import ensure_order_access
from src.api.schemas import OrderOut, PaymentOut, WalletTransactionOut, dump, service_response
from src.core.results import ServiceResult
from src.database.crud import require_order
from src.database.engine import get_session
from src.database.models import Order, User
from src.services.settlement_service import SettlementService

router = APIRouter(prefix="/orders", tags=["payment"])

settlement_service = SettlementService()


class ExternalPaymentRequest(BaseModel):
    external_transaction_id: str = Field(min_length=1)


class HybridPaymentRequest(BaseModel):
    wallet_amount: Decimal = Field(gt=0)
    external_transaction_id: str = Field(min_length=1)


class PaymentOptionOut(BaseModel):
    type: str
    label: str
    wallet_amount: Decimal
    external_amount: Decimal


async def _own_order(session: AsyncSession, order_id: int, user: User) -> Order:
    """Only the client who placed the order can pay for it"""
    order = await require_order(session, order_id)
    if order.client_id != user.id:
        logger.warning(f"User {user.id} tried to pay for order {order_id}")
        raise HTTPException(status_code=403, detail="Not your order")
    return order


def _settlement_response(result: ServiceResult):
    data = None
    if result.success:
        data = {"order": dump(OrderOut, result.order)}
        if result.payment is not None:
            data["payment"] = dump(PaymentOut, result.payment)
        if result.wallet_transaction is not None:
            data["wallet_transaction"] = dump(WalletTransactionOut, result.wallet_transaction)
    return service_response(result, data)


@router.post("/{order_id}/pay/wallet")
async def pay_with_wallet(
    order_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Pay the full price from the wallet (402 on insufficient balance)"""
    order = await _own_order(session, order_id, user)
    result = await settlement_service.pay_with_wallet(session, order)
    return _settlement_response(result)


@router.post("/{order_id}/pay/external")
async def pay_with_external(
    order_id: int,
    request: ExternalPaymentRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await _own_order(session, order_id, user)
    result = await settlement_service.pay_with_external(
        session, order, request.external_transaction_id
    )
    return _settlement_response(result)


@router.post("/{order_id}/pay/hybrid")
async def pay_with_hybrid(
    order_id: int,
    request: HybridPaymentRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Wallet portion plus external remainder"""
    order = await _own_order(session, order_id, user)
    result = await settlement_service.pay_with_hybrid(
        session, order, request.wallet_amount, request.external_transaction_id
    )
    return _settlement_response(result)


@router.get("/{order_id}/payment-options", response_model=List[PaymentOptionOut])
async def payment_options(
    order_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await _own_order(session, order_id, user)
    options = await settlement_service.payment_options(session, user.id, order.price)
    return [
        PaymentOptionOut(
            type=o.type.value,
            label=o.label,
            wallet_amount=o.wallet_amount,
            external_amount=o.external_amount,
        )
        for o in options
    ]


@router.get("/{order_id}/payments", response_model=List[PaymentOut])
async def order_payments(
    order_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    ensure_order_access(order, user)
    payments = await settlement_service.get_order_payments(session, order.id)
    return [PaymentOut.model_validate(p) for p in payments]
