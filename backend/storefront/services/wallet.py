from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import metrics
from storefront.core.config import settings
from storefront.models.user import User
from storefront.models.wallet import (
    CREDIT_TYPES,
    WalletSourceRefModel,
    WalletTransaction,
    WalletTransactionSource,
    WalletTransactionStatus,
    WalletTransactionType,
)
from storefront.services import pricing

logger = logging.getLogger(__name__)

GIFT_CARD_CODE_RE = re.compile(r"^[A-Z0-9]{16}$")

USER_NOT_FOUND = "User not found"
INSUFFICIENT_BALANCE = "Insufficient wallet balance"
INVALID_GIFT_CARD = "Invalid gift card code format"
GIFT_CARD_ALREADY_REDEEMED = "Gift card already redeemed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DebitResult:
    success: bool
    balance: Decimal | None = None
    transaction: WalletTransaction | None = None
    error: str | None = None


@dataclass(frozen=True)
class GiftCardRedemption:
    success: bool
    message: str
    amount: Decimal | None = None
    balance: Decimal | None = None
    transaction: WalletTransaction | None = None


async def _read_balance(session: AsyncSession, user_id: UUID) -> Decimal | None:
    return (await session.execute(select(User.wallet_balance).where(User.id == user_id))).scalar_one_or_none()


async def _user_exists(session: AsyncSession, user_id: UUID) -> bool:
    return (await session.execute(select(User.id).where(User.id == user_id))).scalar_one_or_none() is not None


async def _apply_credit(
    session: AsyncSession,
    *,
    user_id: UUID,
    amount: Decimal,
    source: WalletTransactionSource,
    description: str,
    type: WalletTransactionType,
    order_id: UUID | None,
    gift_card_code: str | None,
    source_ref: tuple[UUID, WalletSourceRefModel] | None,
) -> WalletTransaction:
    """Increment the balance and stage the ledger row; the caller commits."""
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(wallet_balance=User.wallet_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)

    balance = await _read_balance(session, user_id)
    ref_id, ref_model = source_ref if source_ref else (None, None)
    tx = WalletTransaction(
        user_id=user_id,
        type=type,
        amount=amount,
        balance=balance,
        description=description,
        source=source,
        source_ref_id=ref_id,
        source_ref_model=ref_model,
        order_id=order_id,
        gift_card_code=gift_card_code,
        status=WalletTransactionStatus.completed,
        created_at=_now(),
    )
    session.add(tx)
    return tx


async def credit(
    session: AsyncSession,
    *,
    user_id: UUID,
    amount: Decimal,
    source: WalletTransactionSource,
    description: str,
    type: WalletTransactionType = WalletTransactionType.credit,
    order_id: UUID | None = None,
    gift_card_code: str | None = None,
    source_ref: tuple[UUID, WalletSourceRefModel] | None = None,
) -> WalletTransaction:
    """Add ``amount`` to a user's wallet and append the matching ledger entry.

    The balance moves with a single ``UPDATE ... SET wallet_balance =
    wallet_balance + :amount`` so concurrent credits never lose an update.
    The entry records the balance read back inside the same transaction.
    """
    amount = pricing.quantize_money(amount)
    if amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be positive")
    if type not in CREDIT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credit type")

    tx = await _apply_credit(
        session,
        user_id=user_id,
        amount=amount,
        source=source,
        description=description,
        type=type,
        order_id=order_id,
        gift_card_code=gift_card_code,
        source_ref=source_ref,
    )
    await session.commit()
    await session.refresh(tx)
    metrics.record_wallet_credit()
    logger.info(
        "wallet_credited",
        extra={
            "user_id": str(user_id),
            "amount": amount,
            "balance": tx.balance,
            "source": source.value,
            "transaction_id": str(tx.id),
        },
    )
    return tx


async def debit(
    session: AsyncSession,
    *,
    user_id: UUID,
    amount: Decimal,
    description: str,
    order_id: UUID | None = None,
) -> DebitResult:
    """Take ``amount`` out of a user's wallet if the balance covers it.

    Refusals (unknown user, insufficient funds) come back as a failed
    :class:`DebitResult` and leave the balance untouched.
    """
    amount = pricing.quantize_money(amount)
    if amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must be positive")

    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.wallet_balance >= amount)
        .values(wallet_balance=User.wallet_balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        error = INSUFFICIENT_BALANCE if await _user_exists(session, user_id) else USER_NOT_FOUND
        await session.rollback()
        metrics.record_wallet_debit(False)
        logger.info("wallet_debit_refused", extra={"user_id": str(user_id), "amount": amount, "reason": error})
        return DebitResult(success=False, error=error)

    balance = await _read_balance(session, user_id)
    tx = WalletTransaction(
        user_id=user_id,
        type=WalletTransactionType.debit,
        amount=amount,
        balance=balance,
        description=description,
        source=WalletTransactionSource.order_refund,
        source_ref_id=order_id,
        source_ref_model=WalletSourceRefModel.order if order_id else None,
        order_id=order_id,
        status=WalletTransactionStatus.completed,
        created_at=_now(),
    )
    session.add(tx)
    await session.commit()
    await session.refresh(tx)
    metrics.record_wallet_debit(True)
    logger.info(
        "wallet_debited",
        extra={"user_id": str(user_id), "amount": amount, "balance": balance, "transaction_id": str(tx.id)},
    )
    return DebitResult(success=True, balance=balance, transaction=tx)


def normalize_gift_card_code(code: str | None) -> str:
    return (code or "").strip().upper()


async def redeem_gift_card(session: AsyncSession, *, user_id: UUID, code: str | None) -> GiftCardRedemption:
    """Credit the wallet for a gift card that has not been redeemed before.

    Every well-formed code is worth ``settings.gift_card_default_amount``
    until an issued-card registry exists.
    """
    cleaned = normalize_gift_card_code(code)
    if not GIFT_CARD_CODE_RE.match(cleaned):
        return GiftCardRedemption(success=False, message=INVALID_GIFT_CARD)

    already = (
        await session.execute(select(WalletTransaction.id).where(WalletTransaction.gift_card_code == cleaned))
    ).first()
    if already:
        return GiftCardRedemption(success=False, message=GIFT_CARD_ALREADY_REDEEMED)

    amount = pricing.quantize_money(settings.gift_card_default_amount)
    try:
        tx = await _apply_credit(
            session,
            user_id=user_id,
            amount=amount,
            source=WalletTransactionSource.giftcard,
            description=f"Gift card redeemed: {cleaned}",
            type=WalletTransactionType.giftcard,
            order_id=None,
            gift_card_code=cleaned,
            source_ref=None,
        )
    except HTTPException:
        return GiftCardRedemption(success=False, message=USER_NOT_FOUND)
    try:
        await session.commit()
    except IntegrityError:
        # Unique gift_card_code: a concurrent redemption won.
        await session.rollback()
        return GiftCardRedemption(success=False, message=GIFT_CARD_ALREADY_REDEEMED)
    await session.refresh(tx)

    metrics.record_gift_card_redeemed()
    metrics.record_wallet_credit()
    logger.info(
        "gift_card_redeemed",
        extra={"user_id": str(user_id), "amount": amount, "balance": tx.balance, "transaction_id": str(tx.id)},
    )
    return GiftCardRedemption(
        success=True,
        message=f"Gift card redeemed! {pricing.format_rupees(amount)} added to your wallet",
        amount=amount,
        balance=tx.balance,
        transaction=tx,
    )


async def get_balance(session: AsyncSession, user_id: UUID) -> Decimal:
    balance = await _read_balance(session, user_id)
    if balance is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)
    return pricing.quantize_money(balance)


async def list_transactions(
    session: AsyncSession,
    user_id: UUID,
    *,
    page: int = 1,
    limit: int | None = None,
) -> tuple[list[WalletTransaction], int]:
    limit = limit or settings.wallet_transactions_page_size
    total = int(
        (
            await session.execute(
                select(func.count()).select_from(WalletTransaction).where(WalletTransaction.user_id == user_id)
            )
        ).scalar_one()
    )
    result = await session.execute(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total
