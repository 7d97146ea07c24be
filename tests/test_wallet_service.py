"""
Tests for the wallet ledger
"""

import pytest
from decimal import Decimal

from sqlalchemy import select

from src.core.enums import WalletPaymentMethod, WalletTransactionType
from src.core.errors import InvalidInputError
from src.database.models import Wallet, WalletTransaction
from src.services.wallet_service import WalletService


@pytest.mark.asyncio
async def test_get_or_create_wallet(db_session, client_user):
    """A new wallet starts empty in USD and is reused afterwards"""
    wallet = await WalletService.get_or_create_wallet(db_session, client_user.id)

    assert wallet.id is not None
    assert wallet.balance == Decimal("0.00")
    assert wallet.currency == "USD"

    again = await WalletService.get_or_create_wallet(db_session, client_user.id)
    assert again.id == wallet.id


@pytest.mark.asyncio
async def test_balance_has_no_setter(db_session, client_user):
    """The balance can only change through ledger operations"""
    wallet = await WalletService.get_or_create_wallet(db_session, client_user.id)

    with pytest.raises(AttributeError):
        wallet.balance = Decimal("100.00")


@pytest.mark.asyncio
async def test_top_up_credits_wallet(db_session, client_user):
    """Top-up writes a completed credit row and raises the balance"""
    txn = await WalletService.top_up(db_session, client_user.id, Decimal("50"), "ext_123")
    wallet = await WalletService.get_wallet(db_session, client_user.id)

    assert wallet.balance == Decimal("50.00")
    assert txn.type == WalletTransactionType.CREDIT.value
    assert txn.amount == Decimal("50.00")
    assert txn.payment_method == WalletPaymentMethod.EXTERNAL.value
    assert txn.description == "Wallet top-up (ext_123)"


@pytest.mark.asyncio
async def test_debit_reduces_balance(db_session, client_user):
    """Debit within the balance succeeds"""
    await WalletService.top_up(db_session, client_user.id, Decimal("100.00"))
    wallet = await WalletService.get_wallet(db_session, client_user.id)

    txn = await WalletService.debit(db_session, wallet, Decimal("30.50"), "Payment for order #1")

    assert txn is not None
    assert txn.type == WalletTransactionType.DEBIT.value
    assert wallet.balance == Decimal("69.50")


@pytest.mark.asyncio
async def test_debit_insufficient_funds_changes_nothing(db_session, client_user):
    """Overdraft returns None and writes no ledger row"""
    await WalletService.top_up(db_session, client_user.id, Decimal("20.00"))
    wallet = await WalletService.get_wallet(db_session, client_user.id)

    txn = await WalletService.debit(db_session, wallet, Decimal("20.01"), "Too much")

    assert txn is None
    assert wallet.balance == Decimal("20.00")

    rows = (await db_session.execute(select(WalletTransaction))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_debit_exact_balance(db_session, client_user):
    """Debiting the whole balance leaves exactly zero"""
    await WalletService.top_up(db_session, client_user.id, Decimal("42.42"))
    wallet = await WalletService.get_wallet(db_session, client_user.id)

    txn = await WalletService.debit(db_session, wallet, Decimal("42.42"), "All of it")

    assert txn is not None
    assert wallet.balance == Decimal("0.00")


@pytest.mark.asyncio
async def test_non_positive_amounts_rejected(db_session, client_user):
    """Zero, negative and non-numeric amounts are invalid input"""
    wallet = await WalletService.get_or_create_wallet(db_session, client_user.id)

    for amount in (Decimal("0"), Decimal("-5"), "abc"):
        with pytest.raises(InvalidInputError) as exc_info:
            await WalletService.credit(db_session, wallet, amount, "Bad credit")
        assert exc_info.value.errors[0].field == "amount"

    with pytest.raises(InvalidInputError):
        await WalletService.debit(db_session, wallet, Decimal("-1"), "Bad debit")


@pytest.mark.asyncio
async def test_ledger_matches_balance(db_session, client_user):
    """Cached balance == completed credits - completed debits"""
    await WalletService.top_up(db_session, client_user.id, Decimal("100.00"))
    wallet = await WalletService.get_wallet(db_session, client_user.id)

    await WalletService.debit(db_session, wallet, Decimal("33.33"), "Order #1")
    await WalletService.credit(
        db_session, wallet, Decimal("10.00"), "Refund", payment_method=WalletPaymentMethod.REFUND
    )
    await WalletService.debit(db_session, wallet, Decimal("76.67"), "Order #2")
    assert await WalletService.debit(db_session, wallet, Decimal("0.01"), "Order #3") is None

    check = await WalletService.verify_balance(db_session, wallet)

    assert check["consistent"] is True
    assert check["balance"] == Decimal("0.00")
    assert check["ledger_balance"] == Decimal("0.00")


@pytest.mark.asyncio
async def test_get_transactions_newest_first(db_session, client_user):
    """Ledger rows come back newest first and respect the limit"""
    for amount in ("1.00", "2.00", "3.00"):
        await WalletService.top_up(db_session, client_user.id, Decimal(amount))

    rows = await WalletService.get_transactions(db_session, client_user.id, limit=2)

    assert [r.amount for r in rows] == [Decimal("3.00"), Decimal("2.00")]


@pytest.mark.asyncio
async def test_wallet_statistics(db_session, client_user, other_client):
    """Per-user and platform-wide totals"""
    await WalletService.top_up(db_session, client_user.id, Decimal("80.00"))
    await WalletService.top_up(db_session, other_client.id, Decimal("20.00"))
    wallet = await WalletService.get_wallet(db_session, client_user.id)
    await WalletService.debit(db_session, wallet, Decimal("30.00"), "Order")

    stats = await WalletService.get_wallet_statistics(db_session, client_user.id)
    assert stats["balance"] == Decimal("50.00")
    assert stats["total_credits"] == Decimal("80.00")
    assert stats["total_debits"] == Decimal("30.00")
    assert stats["transaction_count"] == 2

    platform = await WalletService.get_all_wallet_statistics(db_session)
    assert platform["total_wallets"] == 2
    assert platform["total_balance"] == Decimal("70.00")
    assert platform["transaction_count"] == 3

    wallets = (await db_session.execute(select(Wallet))).scalars().all()
    assert len(wallets) == 2
