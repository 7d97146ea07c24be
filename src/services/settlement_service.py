# coding: utf-8
"""
Payment Settlement Service

Settles orders through the wallet, the external gateway, or a hybrid split
of both. Each settlement is one unit of work: wallet debit, Payment row and
the order's transition to `active` commit together or not at all.

Business-rule failures (insufficient funds, wrong status, nothing to
refund, gateway refusal) come back as ServiceResult values.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Protocol, runtime_checkable

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import to_money
from src.core.clock import Clock, SystemClock
from src.core.enums import (
    FailureReason,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    WalletPaymentMethod,
)
from src.core.errors import FieldError, InvalidInputError
from src.core.results import ServiceResult
from src.database.crud import get_latest_completed_payment, get_payments_for_order, lock_order
from src.database.models import Order, Payment
from src.services.order_service import OrderLifecycleService
from src.services.wallet_service import WalletService

RETRY_MESSAGE = "Payment could not be completed, please retry"


# ===========================
# EXTERNAL GATEWAY
# ===========================


class GatewayError(Exception):
    """External processor refused or could not confirm a charge"""


@dataclass(frozen=True)
class GatewayConfirmation:
    transaction_id: str
    amount: Decimal
    confirmed_at: datetime
    raw: Dict = field(default_factory=dict)


@runtime_checkable
class PaymentGateway(Protocol):
    async def confirm(self, transaction_id: str, amount: Decimal) -> GatewayConfirmation:
        ...


class SynchronousGateway:
    """
    Treats every external transaction as already confirmed

    Webhook-driven confirmation (pending -> completed later) is a future
    extension; this gateway only rejects empty transaction ids.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    async def confirm(self, transaction_id: str, amount: Decimal) -> GatewayConfirmation:
        if not transaction_id:
            raise GatewayError("Missing external transaction id")
        return GatewayConfirmation(
            transaction_id=transaction_id,
            amount=amount,
            confirmed_at=self.clock.now(),
        )


# ===========================
# PAYMENT OPTIONS
# ===========================


class PaymentOptionType(str, Enum):
    WALLET_FULL = "wallet_full"
    HYBRID = "hybrid"
    EXTERNAL_FULL = "external_full"


@dataclass(frozen=True)
class PaymentOption:
    type: PaymentOptionType
    label: str
    wallet_amount: Decimal
    external_amount: Decimal


# ===========================
# SERVICE
# ===========================


class SettlementService:
    """Orchestrates order payment and refunds"""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        gateway: Optional[PaymentGateway] = None,
        lifecycle: Optional[OrderLifecycleService] = None,
    ):
        self.clock = clock or SystemClock()
        self.gateway = gateway or SynchronousGateway(self.clock)
        self.lifecycle = lifecycle or OrderLifecycleService(clock=self.clock, settlement=self)

    @staticmethod
    def _check_payable(order: Order) -> Optional[ServiceResult]:
        status = order.status_enum
        if not status.requires_payment:
            logger.warning(f"Order {order.id} is not payable in status {status.value}")
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                f"Order cannot be paid while {status.label.lower()}",
                current_status=status.value,
            )
        return None

    async def _lock_payable(
        self, session: AsyncSession, order: Order
    ) -> Optional[ServiceResult]:
        """
        Lock the order row and check it can still be paid

        On failure the unit is ended, releasing the lock.
        """
        await lock_order(session, order.id)
        failure = self._check_payable(order)
        if failure:
            await self._end_unit(session)
        return failure

    async def _activate(
        self, session: AsyncSession, order: Order, payment: Payment, notes: str
    ) -> Optional[ServiceResult]:
        """Mark payment completed and move the order to active (no commit)"""
        payment.status = PaymentStatus.COMPLETED.value
        result = await self.lifecycle.transition(
            session,
            order,
            OrderStatus.ACTIVE,
            actor_id=order.client_id,
            notes=notes,
            commit=False,
        )
        if result.success:
            return None
        logger.error(f"Order {order.id}: activation after payment refused: {result.message}")
        return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

    async def _end_unit(self, session: AsyncSession) -> None:
        # Nothing pending; ends the transaction and releases row locks
        await session.commit()

    async def _abort(self, session: AsyncSession, order: Order) -> None:
        """Discard the unit's flushed writes and reload the order"""
        await session.rollback()
        await session.refresh(order)

    async def pay_with_wallet(self, session: AsyncSession, order: Order) -> ServiceResult:
        """
        Settle the full order price from the client's wallet

        Args:
            session: Database session
            order: Order in placed / waiting_for_payment

        Returns:
            ServiceResult with payment and wallet_transaction on success;
            insufficient_funds carries required_amount / available_amount
        """
        failure = await self._lock_payable(session, order)
        if failure:
            return failure

        price = to_money(order.price)
        wallet = await WalletService.get_or_create_wallet(session, order.client_id, commit=False)

        try:
            txn = None
            if price > 0:
                txn = await WalletService.debit(
                    session,
                    wallet,
                    price,
                    f"Payment for order #{order.id}",
                    order_id=order.id,
                    payment_method=WalletPaymentMethod.WALLET,
                    commit=False,
                )
                if txn is None:
                    await self._end_unit(session)
                    return ServiceResult.fail(
                        FailureReason.INSUFFICIENT_FUNDS,
                        "Insufficient wallet balance",
                        required_amount=price,
                        available_amount=wallet.balance,
                    )

            payment = Payment(
                order_id=order.id,
                user_id=order.client_id,
                amount=price,
                payment_method=PaymentMethod.WALLET.value,
                status=PaymentStatus.PENDING.value,
                payment_metadata={
                    "wallet_transaction_id": txn.id if txn else None,
                    "processed_at": self.clock.now().isoformat(),
                },
            )
            session.add(payment)
            await session.flush()

            failure = await self._activate(session, order, payment, "Paid with wallet balance")
            if failure:
                await self._abort(session, order)
                return failure
            await session.commit()

        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Wallet payment for order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(f"Order {order.id} paid with wallet: ${price}")
        return ServiceResult.ok(
            "Payment processed successfully",
            order=order,
            payment=payment,
            wallet_transaction=txn,
        )

    async def pay_with_external(
        self,
        session: AsyncSession,
        order: Order,
        external_transaction_id: str,
    ) -> ServiceResult:
        """
        Settle the full order price through the external gateway

        A refused confirmation is recorded as a failed Payment row and the
        order stays unpaid.
        """
        if not external_transaction_id or not str(external_transaction_id).strip():
            raise InvalidInputError.single(
                "external_transaction_id", "External transaction id is required"
            )

        failure = await self._lock_payable(session, order)
        if failure:
            return failure

        price = to_money(order.price)

        try:
            confirmation = await self.gateway.confirm(external_transaction_id, price)
        except GatewayError as e:
            logger.warning(f"Gateway refused transaction {external_transaction_id} for order {order.id}: {e}")
            try:
                session.add(
                    Payment(
                        order_id=order.id,
                        user_id=order.client_id,
                        amount=price,
                        payment_method=PaymentMethod.EXTERNAL.value,
                        external_transaction_id=external_transaction_id,
                        status=PaymentStatus.FAILED.value,
                        payment_metadata={"error": str(e), "failed_at": self.clock.now().isoformat()},
                    )
                )
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.exception(f"Could not record failed payment for order {order.id}")
            return ServiceResult.fail(
                FailureReason.PROCESSOR_FAILURE,
                "External payment could not be confirmed",
                external_transaction_id=external_transaction_id,
            )

        try:
            payment = Payment(
                order_id=order.id,
                user_id=order.client_id,
                amount=price,
                payment_method=PaymentMethod.EXTERNAL.value,
                external_transaction_id=external_transaction_id,
                status=PaymentStatus.PENDING.value,
                payment_metadata={
                    "external_transaction_id": external_transaction_id,
                    "processed_at": confirmation.confirmed_at.isoformat(),
                },
            )
            session.add(payment)
            await session.flush()

            failure = await self._activate(session, order, payment, "Paid through external gateway")
            if failure:
                await self._abort(session, order)
                return failure
            await session.commit()

        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"External payment for order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(f"Order {order.id} paid externally: ${price} (txn {external_transaction_id})")
        return ServiceResult.ok("External payment processed successfully", order=order, payment=payment)

    async def pay_with_hybrid(
        self,
        session: AsyncSession,
        order: Order,
        wallet_amount,
        external_transaction_id: Optional[str],
    ) -> ServiceResult:
        """
        Settle part of the price from the wallet and the rest externally

        The wallet portion is debited (uncommitted) before the gateway is
        asked for the remainder; a refused remainder rolls the debit back.

        Args:
            session: Database session
            order: Order in placed / waiting_for_payment
            wallet_amount: Wallet portion (0 < wallet_amount <= price)
            external_transaction_id: Gateway transaction for the remainder

        Returns:
            ServiceResult; on a failed wallet debit or gateway refusal no
            Payment row exists and the order status is untouched
        """
        failure = await self._lock_payable(session, order)
        if failure:
            return failure

        price = to_money(order.price)
        wallet_amount = to_money(wallet_amount)
        external_amount = price - wallet_amount

        errors: List[FieldError] = []
        if wallet_amount <= 0 or wallet_amount > price:
            errors.append(
                FieldError("wallet_amount", f"Wallet amount must be greater than 0 and at most {price}")
            )
        elif external_amount > 0 and not external_transaction_id:
            errors.append(FieldError("external_transaction_id", "External transaction id is required"))
        if errors:
            await self._end_unit(session)
            raise InvalidInputError(errors)

        wallet = await WalletService.get_or_create_wallet(session, order.client_id, commit=False)

        try:
            txn = await WalletService.debit(
                session,
                wallet,
                wallet_amount,
                f"Hybrid payment for order #{order.id} (wallet portion)",
                order_id=order.id,
                payment_method=WalletPaymentMethod.HYBRID,
                commit=False,
            )
            if txn is None:
                await self._end_unit(session)
                return self._insufficient_for_hybrid(wallet_amount, wallet.balance)

            confirmation = None
            if external_amount > 0:
                try:
                    confirmation = await self.gateway.confirm(external_transaction_id, external_amount)
                except GatewayError as e:
                    logger.warning(f"Gateway refused hybrid remainder for order {order.id}: {e}")
                    await self._abort(session, order)
                    return ServiceResult.fail(
                        FailureReason.PROCESSOR_FAILURE,
                        "External payment could not be confirmed",
                        external_transaction_id=external_transaction_id,
                    )

            processed_at = confirmation.confirmed_at if confirmation else self.clock.now()
            payment = Payment(
                order_id=order.id,
                user_id=order.client_id,
                amount=price,
                payment_method=PaymentMethod.HYBRID.value,
                external_transaction_id=external_transaction_id,
                status=PaymentStatus.PENDING.value,
                payment_metadata={
                    "wallet_amount": str(wallet_amount),
                    "external_amount": str(external_amount),
                    "wallet_transaction_id": txn.id,
                    "external_transaction_id": external_transaction_id,
                    "processed_at": processed_at.isoformat(),
                },
            )
            session.add(payment)
            await session.flush()

            failure = await self._activate(session, order, payment, "Paid with wallet and external gateway")
            if failure:
                await self._abort(session, order)
                return failure
            await session.commit()

        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Hybrid payment for order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(
            f"Order {order.id} paid hybrid: wallet=${wallet_amount} external=${external_amount}"
        )
        return ServiceResult.ok(
            "Hybrid payment processed successfully",
            order=order,
            payment=payment,
            wallet_transaction=txn,
        )

    @staticmethod
    def _insufficient_for_hybrid(required: Decimal, available: Decimal) -> ServiceResult:
        return ServiceResult.fail(
            FailureReason.INSUFFICIENT_FUNDS,
            "Insufficient wallet balance for hybrid payment",
            required_amount=required,
            available_amount=available,
        )

    async def cancel_and_refund(
        self,
        session: AsyncSession,
        order: Order,
        commit: bool = True,
    ) -> ServiceResult:
        """
        Refund the order's latest completed payment to the client's wallet

        The order status is left alone; OrderLifecycleService.cancel
        performs the transition in the same unit.

        Args:
            session: Database session
            order: Order to refund
            commit: Commit immediately (False inside a larger unit)

        Returns:
            ServiceResult with the refunded payment and credit row
        """
        payment = await get_latest_completed_payment(session, order.id)
        if payment is None:
            logger.warning(f"No completed payment to refund for order {order.id}")
            return ServiceResult.fail(
                FailureReason.NO_COMPLETED_PAYMENT,
                "No completed payment found for this order",
                order_id=order.id,
            )

        refund_amount = to_money(payment.amount)

        try:
            wallet = await WalletService.get_or_create_wallet(session, order.client_id, commit=False)
            txn = None
            if refund_amount > 0:
                txn = await WalletService.credit(
                    session,
                    wallet,
                    refund_amount,
                    f"Refund for cancelled order #{order.id}",
                    order_id=order.id,
                    payment_method=WalletPaymentMethod.REFUND,
                    commit=False,
                )

            payment.status = PaymentStatus.REFUNDED.value
            payment.payment_metadata = {
                **(payment.payment_metadata or {}),
                "refunded_at": self.clock.now().isoformat(),
                "refund_amount": str(refund_amount),
            }
            await session.flush()

            if commit:
                await session.commit()

        except SQLAlchemyError:
            if not commit:
                raise
            await session.rollback()
            logger.exception(f"Refund for order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(f"Order {order.id} refunded ${refund_amount} to wallet")
        return ServiceResult.ok(
            "Refund processed",
            order=order,
            payment=payment,
            wallet_transaction=txn,
        )

    async def payment_options(
        self, session: AsyncSession, user_id: int, order_amount
    ) -> List[PaymentOption]:
        """
        Advisory list of ways to pay `order_amount`

        Settlement itself re-validates; this only drives display.
        """
        amount = to_money(order_amount)
        wallet = await WalletService.get_wallet(session, user_id)
        balance = wallet.balance if wallet else Decimal("0.00")

        options: List[PaymentOption] = []
        if balance >= amount:
            options.append(
                PaymentOption(PaymentOptionType.WALLET_FULL, "Pay with wallet", amount, Decimal("0.00"))
            )
        elif balance > 0:
            options.append(
                PaymentOption(
                    PaymentOptionType.HYBRID,
                    "Wallet + external payment",
                    balance,
                    amount - balance,
                )
            )
        options.append(
            PaymentOption(PaymentOptionType.EXTERNAL_FULL, "Pay externally", Decimal("0.00"), amount)
        )
        return options

    # ===========================
    # REPORTING
    # ===========================

    @staticmethod
    async def get_order_payments(session: AsyncSession, order_id: int) -> List[Payment]:
        return await get_payments_for_order(session, order_id)

    @staticmethod
    async def get_payment_statistics(session: AsyncSession) -> dict:
        """Counts and revenue over all payments"""
        rows = (
            await session.execute(
                select(Payment.status, func.count(), func.sum(Payment.amount)).group_by(Payment.status)
            )
        ).all()

        counts = {status: count for status, count, _ in rows}
        sums = {status: to_money(total or 0) for status, _, total in rows}

        completed = sums.get(PaymentStatus.COMPLETED.value, Decimal("0.00"))
        refunded = sums.get(PaymentStatus.REFUNDED.value, Decimal("0.00"))
        gross = completed + refunded

        return {
            "total_payments": sum(counts.values()),
            "completed_payments": counts.get(PaymentStatus.COMPLETED.value, 0),
            "failed_payments": counts.get(PaymentStatus.FAILED.value, 0),
            "refunded_payments": counts.get(PaymentStatus.REFUNDED.value, 0),
            "total_revenue": gross,
            "total_refunds": refunded,
            "net_revenue": gross - refunded,
        }

    @staticmethod
    async def get_payments_by_method(session: AsyncSession) -> Dict[str, dict]:
        """Completed payments grouped by method"""
        stmt = (
            select(Payment.payment_method, func.count(), func.sum(Payment.amount))
            .where(Payment.status == PaymentStatus.COMPLETED.value)
            .group_by(Payment.payment_method)
        )
        return {
            method: {"count": count, "total": to_money(total or 0)}
            for method, count, total in (await session.execute(stmt)).all()
        }
