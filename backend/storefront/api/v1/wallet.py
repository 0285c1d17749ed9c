import math
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.dependencies import get_current_user, require_admin
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.schemas.wallet import (
    GiftCardRedeemRequest,
    GiftCardRedeemResponse,
    WalletCreditRequest,
    WalletCreditResponse,
    WalletDebitRequest,
    WalletDebitResponse,
    WalletPagination,
    WalletRead,
    WalletTransactionRead,
)
from storefront.services import wallet as wallet_service

router = APIRouter(prefix="/wallet", tags=["wallet"])
admin_router = APIRouter(prefix="/admin/wallet", tags=["admin-wallet"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]
AdminDep = Annotated[User, Depends(require_admin)]
PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int | None, Query(ge=1, le=100)]


@router.get("", response_model=WalletRead)
async def my_wallet(
    session: SessionDep,
    current_user: CurrentUserDep,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> WalletRead:
    balance = await wallet_service.get_balance(session, current_user.id)
    items, total = await wallet_service.list_transactions(session, current_user.id, page=page, limit=limit)
    page_size = limit or settings.wallet_transactions_page_size
    return WalletRead(
        balance=balance,
        transactions=[WalletTransactionRead.model_validate(tx) for tx in items],
        pagination=WalletPagination(
            page=page,
            limit=page_size,
            total=total,
            pages=math.ceil(total / page_size),
        ),
    )


@router.post("/gift-cards/redeem", response_model=GiftCardRedeemResponse)
async def redeem_gift_card(
    payload: GiftCardRedeemRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> GiftCardRedeemResponse:
    result = await wallet_service.redeem_gift_card(session, user_id=current_user.id, code=payload.code)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return GiftCardRedeemResponse(
        success=True,
        message=result.message,
        amount=result.amount,
        balance=result.balance,
    )


@admin_router.post("/{user_id}/credit", response_model=WalletCreditResponse)
async def admin_credit_wallet(
    user_id: UUID,
    payload: WalletCreditRequest,
    session: SessionDep,
    _: AdminDep,
) -> WalletCreditResponse:
    tx = await wallet_service.credit(
        session,
        user_id=user_id,
        amount=payload.amount,
        source=payload.source,
        description=payload.description,
        type=payload.type,
        order_id=payload.order_id,
    )
    return WalletCreditResponse(balance=tx.balance, transaction_id=tx.id)


@admin_router.post("/{user_id}/debit", response_model=WalletDebitResponse)
async def admin_debit_wallet(
    user_id: UUID,
    payload: WalletDebitRequest,
    session: SessionDep,
    _: AdminDep,
) -> WalletDebitResponse:
    result = await wallet_service.debit(
        session,
        user_id=user_id,
        amount=payload.amount,
        description=payload.description,
        order_id=payload.order_id,
    )
    return WalletDebitResponse(
        success=result.success,
        balance=result.balance,
        transaction_id=result.transaction.id if result.transaction else None,
        error=result.error,
    )
