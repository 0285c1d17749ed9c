from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.wallet import (
    WalletSourceRefModel,
    WalletTransactionSource,
    WalletTransactionStatus,
    WalletTransactionType,
)


class WalletTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: WalletTransactionType
    amount: Decimal
    balance: Decimal
    description: str
    source: WalletTransactionSource
    source_ref_id: UUID | None = None
    source_ref_model: WalletSourceRefModel | None = None
    order_id: UUID | None = None
    gift_card_code: str | None = None
    status: WalletTransactionStatus
    created_at: datetime


class WalletPagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class WalletRead(BaseModel):
    balance: Decimal
    transactions: list[WalletTransactionRead]
    pagination: WalletPagination


class GiftCardRedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class GiftCardRedeemResponse(BaseModel):
    success: bool
    message: str
    amount: Decimal
    balance: Decimal


class WalletCreditRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    source: WalletTransactionSource = WalletTransactionSource.admin
    description: str = Field(min_length=1, max_length=500)
    type: WalletTransactionType = WalletTransactionType.credit
    order_id: UUID | None = None


class WalletCreditResponse(BaseModel):
    balance: Decimal
    transaction_id: UUID


class WalletDebitRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1, max_length=500)
    order_id: UUID | None = None


class WalletDebitResponse(BaseModel):
    success: bool
    balance: Decimal | None = None
    transaction_id: UUID | None = None
    error: str | None = None
