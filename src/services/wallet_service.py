# coding: utf-8
"""
Wallet Ledger Service

Append-only ledger per user backing a cached balance.

Features:
- Credit / debit under a row lock (SELECT ... FOR UPDATE)
- Balance and ledger row written in the same unit of work
- Debit returns None instead of overdrawing
- Ledger verification (cached balance vs. sum of completed rows)
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import to_money
from src.core.enums import (
    WalletPaymentMethod,
    WalletTransactionStatus,
    WalletTransactionType,
)
from src.core.errors import InvalidInputError
from src.database.models import Wallet, WalletTransaction


def _positive_amount(amount) -> Decimal:
    try:
        value = to_money(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError.single("amount", "Amount must be a number")
    if value <= 0:
        raise InvalidInputError.single("amount", "Amount must be greater than zero")
    return value


class WalletService:
    """Service for wallet balances and ledger rows"""

    @staticmethod
    async def get_wallet(session: AsyncSession, user_id: int) -> Optional[Wallet]:
        result = await session.execute(select(Wallet).where(Wallet.user_id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_wallet(
        session: AsyncSession, user_id: int, commit: bool = True
    ) -> Wallet:
        """
        Get or create wallet for user

        Args:
            session: Database session
            user_id: User ID
            commit: Commit the new wallet (False inside a larger unit)

        Returns:
            Wallet model
        """
        wallet = await WalletService.get_wallet(session, user_id)

        if wallet is None:
            wallet = Wallet(user_id=user_id)
            session.add(wallet)
            await session.flush()
            if commit:
                await session.commit()
            logger.info(f"Created wallet for user {user_id}")

        return wallet

    @staticmethod
    async def lock_wallet(session: AsyncSession, user_id: int) -> Optional[Wallet]:
        """
        Re-read the wallet row under a row lock

        The identity-map instance is refreshed with the locked values, so
        the balance seen afterwards is the committed one.
        """
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def has_sufficient_funds(wallet: Wallet, amount) -> bool:
        return wallet.has_sufficient_funds(to_money(amount))

    @staticmethod
    async def credit(
        session: AsyncSession,
        wallet: Wallet,
        amount,
        description: str,
        order_id: Optional[int] = None,
        payment_method: Optional[WalletPaymentMethod] = None,
        commit: bool = True,
    ) -> WalletTransaction:
        """
        Add funds to a wallet

        Args:
            session: Database session
            wallet: Target wallet
            amount: Amount (> 0)
            description: Ledger description
            order_id: Linked order
            payment_method: Source of the funds
            commit: Commit immediately (False inside a larger unit)

        Returns:
            Completed credit WalletTransaction
        """
        amount = _positive_amount(amount)

        locked = await WalletService.lock_wallet(session, wallet.user_id)
        txn = locked.apply_credit(
            amount,
            description=description,
            order_id=order_id,
            payment_method=payment_method.value if payment_method else None,
        )
        session.add(txn)
        await session.flush()

        if commit:
            await session.commit()

        logger.info(
            f"Wallet {locked.id} credited ${amount} ({description}), balance=${locked.balance}"
        )
        return txn

    @staticmethod
    async def debit(
        session: AsyncSession,
        wallet: Wallet,
        amount,
        description: str,
        order_id: Optional[int] = None,
        payment_method: Optional[WalletPaymentMethod] = None,
        commit: bool = True,
    ) -> Optional[WalletTransaction]:
        """
        Take funds from a wallet

        The balance check runs against the locked row, so concurrent
        debits cannot jointly overdraw the wallet.

        Args:
            session: Database session
            wallet: Source wallet
            amount: Amount (> 0)
            description: Ledger description
            order_id: Linked order
            payment_method: wallet / hybrid
            commit: Commit immediately (False inside a larger unit)

        Returns:
            Completed debit WalletTransaction, None if balance < amount
        """
        amount = _positive_amount(amount)

        locked = await WalletService.lock_wallet(session, wallet.user_id)
        if not locked.has_sufficient_funds(amount):
            logger.warning(
                f"Insufficient balance in wallet {locked.id}: "
                f"required=${amount}, available=${locked.balance}"
            )
            return None

        txn = locked.apply_debit(
            amount,
            description=description,
            order_id=order_id,
            payment_method=payment_method.value if payment_method else None,
        )
        session.add(txn)
        await session.flush()

        if commit:
            await session.commit()

        logger.info(
            f"Wallet {locked.id} debited ${amount} ({description}), balance=${locked.balance}"
        )
        return txn

    @staticmethod
    async def top_up(
        session: AsyncSession,
        user_id: int,
        amount,
        external_transaction_id: Optional[str] = None,
    ) -> WalletTransaction:
        """Credit funds paid in through the external gateway"""
        wallet = await WalletService.get_or_create_wallet(session, user_id, commit=False)
        description = "Wallet top-up"
        if external_transaction_id:
            description = f"Wallet top-up ({external_transaction_id})"
        return await WalletService.credit(
            session,
            wallet,
            amount,
            description,
            payment_method=WalletPaymentMethod.EXTERNAL,
        )

    @staticmethod
    async def get_transactions(
        session: AsyncSession, user_id: int, limit: int = 50
    ) -> List[WalletTransaction]:
        """Latest ledger rows for a user, newest first"""
        stmt = (
            select(WalletTransaction)
            .join(Wallet, Wallet.id == WalletTransaction.wallet_id)
            .where(Wallet.user_id == user_id)
            .order_by(WalletTransaction.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def _ledger_totals(session: AsyncSession, wallet_id: Optional[int] = None) -> Dict[str, Decimal]:
        stmt = (
            select(WalletTransaction.type, func.sum(WalletTransaction.amount), func.count())
            .where(WalletTransaction.status == WalletTransactionStatus.COMPLETED.value)
            .group_by(WalletTransaction.type)
        )
        if wallet_id is not None:
            stmt = stmt.where(WalletTransaction.wallet_id == wallet_id)

        totals = {"credits": Decimal("0.00"), "debits": Decimal("0.00"), "count": 0}
        for tx_type, total, count in (await session.execute(stmt)).all():
            key = "credits" if tx_type == WalletTransactionType.CREDIT.value else "debits"
            totals[key] = to_money(total or 0)
            totals["count"] += count
        return totals

    @staticmethod
    async def get_wallet_statistics(session: AsyncSession, user_id: int) -> dict:
        wallet = await WalletService.get_or_create_wallet(session, user_id)
        totals = await WalletService._ledger_totals(session, wallet.id)
        return {
            "balance": wallet.balance,
            "currency": wallet.currency,
            "total_credits": totals["credits"],
            "total_debits": totals["debits"],
            "transaction_count": totals["count"],
        }

    @staticmethod
    async def get_all_wallet_statistics(session: AsyncSession) -> dict:
        """Platform-wide totals (admin dashboard)"""
        wallet_count, total_balance = (
            await session.execute(select(func.count(Wallet.id), func.sum(Wallet.balance)))
        ).one()
        totals = await WalletService._ledger_totals(session)
        return {
            "total_wallets": wallet_count,
            "total_balance": to_money(total_balance or 0),
            "total_credits": totals["credits"],
            "total_debits": totals["debits"],
            "transaction_count": totals["count"],
        }

    @staticmethod
    async def verify_balance(session: AsyncSession, wallet: Wallet) -> dict:
        """
        Compare the cached balance with the ledger

        Returns:
            Dict with balance, ledger_balance and consistent flag
        """
        totals = await WalletService._ledger_totals(session, wallet.id)
        ledger_balance = totals["credits"] - totals["debits"]
        consistent = ledger_balance == wallet.balance

        if not consistent:
            logger.error(
                f"Wallet {wallet.id} out of sync: cached=${wallet.balance}, ledger=${ledger_balance}"
            )

        return {
            "balance": wallet.balance,
            "ledger_balance": ledger_balance,
            "consistent": consistent,
        }
