import asyncio
import uuid
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.core import metrics
from storefront.db.base import Base
from storefront.models.user import User
from storefront.models.wallet import (
    CREDIT_TYPES,
    WalletSourceRefModel,
    WalletTransaction,
    WalletTransactionSource,
    WalletTransactionStatus,
    WalletTransactionType,
)
from storefront.services import wallet as wallet_service


def make_session_factory() -> async_sessionmaker:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return SessionLocal


async def _seed_user(session, *, balance: Decimal = Decimal("0"), email: str = "wallet@example.com") -> User:
    user = User(email=email, name="Wallet", wallet_balance=balance)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def _stored_balance(session, user_id) -> Decimal:
    return (await session.execute(select(User.wallet_balance).where(User.id == user_id))).scalar_one()


def test_debit_then_refused_overdraft() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session, balance=Decimal("200"))
            ok = await wallet_service.debit(session, user_id=user.id, amount=Decimal("150"), description="Order payment")
            refused = await wallet_service.debit(
                session, user_id=user.id, amount=Decimal("100"), description="Order payment"
            )
            balance = await _stored_balance(session, user.id)
            txs = (
                (await session.execute(select(WalletTransaction).where(WalletTransaction.user_id == user.id)))
                .scalars()
                .all()
            )
            return ok, refused, balance, txs

    ok, refused, balance, txs = asyncio.run(flow())
    assert ok.success is True
    assert ok.balance == Decimal("50.00")
    assert ok.transaction is not None
    assert ok.transaction.balance == Decimal("50.00")
    assert ok.transaction.type == WalletTransactionType.debit
    assert ok.transaction.source == WalletTransactionSource.order_refund
    assert ok.transaction.status == WalletTransactionStatus.completed

    assert refused.success is False
    assert refused.error == "Insufficient wallet balance"
    assert refused.transaction is None
    assert balance == Decimal("50.00")
    assert len(txs) == 1
    assert metrics.snapshot() == {"wallet_debits": 1, "wallet_debit_refusals": 1}


def test_debit_exact_balance_reaches_zero() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session, balance=Decimal("75.50"))
            order_id = uuid.uuid4()
            result = await wallet_service.debit(
                session, user_id=user.id, amount=Decimal("75.50"), description="Order", order_id=order_id
            )
            return result, order_id

    result, order_id = asyncio.run(flow())
    assert result.success is True
    assert result.balance == Decimal("0.00")
    assert result.transaction.order_id == order_id
    assert result.transaction.source_ref_id == order_id
    assert result.transaction.source_ref_model == WalletSourceRefModel.order


def test_debit_unknown_user() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            return await wallet_service.debit(session, user_id=uuid.uuid4(), amount=Decimal("1"), description="x")

    result = asyncio.run(flow())
    assert result.success is False
    assert result.error == "User not found"


def test_non_positive_amounts_are_rejected() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session, balance=Decimal("10"))
            with pytest.raises(HTTPException) as credit_exc:
                await wallet_service.credit(
                    session,
                    user_id=user.id,
                    amount=Decimal("0"),
                    source=WalletTransactionSource.admin,
                    description="nothing",
                )
            with pytest.raises(HTTPException) as debit_exc:
                await wallet_service.debit(session, user_id=user.id, amount=Decimal("-5"), description="nothing")
            return credit_exc.value, debit_exc.value, await _stored_balance(session, user.id)

    credit_exc, debit_exc, balance = asyncio.run(flow())
    assert credit_exc.status_code == 400
    assert debit_exc.status_code == 400
    assert balance == Decimal("10.00")


def test_credit_unknown_user_is_not_found() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            await wallet_service.credit(
                session,
                user_id=uuid.uuid4(),
                amount=Decimal("10"),
                source=WalletTransactionSource.admin,
                description="Goodwill",
            )

    with pytest.raises(HTTPException) as exc:
        asyncio.run(flow())
    assert exc.value.status_code == 404
    assert exc.value.detail == "User not found"


def test_credit_rejects_debit_type() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session)
            await wallet_service.credit(
                session,
                user_id=user.id,
                amount=Decimal("10"),
                source=WalletTransactionSource.admin,
                description="Wrong",
                type=WalletTransactionType.debit,
            )

    with pytest.raises(HTTPException) as exc:
        asyncio.run(flow())
    assert exc.value.status_code == 400


def test_ledger_matches_balance_after_mixed_operations() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session)
            await wallet_service.credit(
                session,
                user_id=user.id,
                amount=Decimal("300"),
                source=WalletTransactionSource.admin,
                description="Opening credit",
            )
            await wallet_service.debit(session, user_id=user.id, amount=Decimal("120.25"), description="Order 1")
            await wallet_service.credit(
                session,
                user_id=user.id,
                amount=Decimal("40"),
                source=WalletTransactionSource.order_refund,
                description="Refund for order 1",
                type=WalletTransactionType.refund,
            )
            await wallet_service.debit(session, user_id=user.id, amount=Decimal("500"), description="Too much")
            await wallet_service.credit(
                session,
                user_id=user.id,
                amount=Decimal("15"),
                source=WalletTransactionSource.cashback,
                description="Cashback",
                type=WalletTransactionType.cashback,
            )
            await wallet_service.debit(session, user_id=user.id, amount=Decimal("34.75"), description="Order 2")
            txs, total = await wallet_service.list_transactions(session, user.id)
            balance = await wallet_service.get_balance(session, user.id)
            return txs, total, balance

    txs, total, balance = asyncio.run(flow())
    assert total == 5
    # Newest first.
    assert txs[0].description == "Order 2"
    assert txs[-1].description == "Opening credit"
    assert txs[0].balance == balance == Decimal("200.00")

    credits = sum((tx.amount for tx in txs if tx.type in CREDIT_TYPES), Decimal("0"))
    debits = sum((tx.amount for tx in txs if tx.type not in CREDIT_TYPES), Decimal("0"))
    assert credits - debits == balance
    assert all(tx.balance >= 0 for tx in txs)


def test_list_transactions_paginates() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session)
            for i in range(5):
                await wallet_service.credit(
                    session,
                    user_id=user.id,
                    amount=Decimal("10"),
                    source=WalletTransactionSource.promo,
                    description=f"Promo {i}",
                )
            second_page, total = await wallet_service.list_transactions(session, user.id, page=2, limit=2)
            return [tx.description for tx in second_page], total

    descriptions, total = asyncio.run(flow())
    assert total == 5
    assert descriptions == ["Promo 2", "Promo 1"]


def test_gift_card_redeems_once() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session)
            first = await wallet_service.redeem_gift_card(session, user_id=user.id, code="abcd1234efgh5678")
            second = await wallet_service.redeem_gift_card(session, user_id=user.id, code="ABCD1234EFGH5678")
            balance = await wallet_service.get_balance(session, user.id)
            return first, second, balance

    first, second, balance = asyncio.run(flow())
    assert first.success is True
    assert first.amount == Decimal("500.00")
    assert first.balance == Decimal("500.00")
    assert first.transaction.gift_card_code == "ABCD1234EFGH5678"
    assert first.transaction.type == WalletTransactionType.giftcard
    assert first.transaction.source == WalletTransactionSource.giftcard
    assert first.transaction.description == "Gift card redeemed: ABCD1234EFGH5678"

    assert second.success is False
    assert second.message == "Gift card already redeemed"
    assert balance == Decimal("500.00")
    assert metrics.snapshot() == {"gift_cards_redeemed": 1, "wallet_credits": 1}


def test_gift_card_code_used_by_another_user_is_rejected() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            alice = await _seed_user(session, email="alice@example.com")
            bob = await _seed_user(session, email="bob@example.com")
            await wallet_service.redeem_gift_card(session, user_id=alice.id, code="ZZZZ9999YYYY8888")
            rejected = await wallet_service.redeem_gift_card(session, user_id=bob.id, code="ZZZZ9999YYYY8888")
            return rejected, await wallet_service.get_balance(session, bob.id)

    rejected, bob_balance = asyncio.run(flow())
    assert rejected.success is False
    assert bob_balance == Decimal("0.00")


@pytest.mark.parametrize("code", ["", "SHORT", "ABCD1234EFGH567!", "ABCD1234EFGH56789"])
def test_gift_card_rejects_bad_format(code: str) -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            user = await _seed_user(session)
            return await wallet_service.redeem_gift_card(session, user_id=user.id, code=code)

    result = asyncio.run(flow())
    assert result.success is False
    assert result.message == "Invalid gift card code format"


def test_gift_card_unknown_user() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            return await wallet_service.redeem_gift_card(session, user_id=uuid.uuid4(), code="ABCD1234EFGH5678")

    result = asyncio.run(flow())
    assert result.success is False
    assert result.message == "User not found"


def test_get_balance_unknown_user() -> None:
    SessionLocal = make_session_factory()

    async def flow():
        async with SessionLocal() as session:
            await wallet_service.get_balance(session, uuid.uuid4())

    with pytest.raises(HTTPException) as exc:
        asyncio.run(flow())
    assert exc.value.status_code == 404
