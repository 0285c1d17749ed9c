import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.base import Base


class WalletTransactionType(str, enum.Enum):
    credit = "credit"
    debit = "debit"
    refund = "refund"
    giftcard = "giftcard"
    cashback = "cashback"


# Types that add to the balance; everything else subtracts.
CREDIT_TYPES = frozenset(
    {
        WalletTransactionType.credit,
        WalletTransactionType.refund,
        WalletTransactionType.giftcard,
        WalletTransactionType.cashback,
    }
)


class WalletTransactionSource(str, enum.Enum):
    order_refund = "order_refund"
    giftcard = "giftcard"
    cashback = "cashback"
    admin = "admin"
    referral = "referral"
    promo = "promo"


class WalletSourceRefModel(str, enum.Enum):
    order = "order"
    gift_card = "gift_card"
    referral = "referral"


class WalletTransactionStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        CheckConstraint("balance >= 0", name="ck_wallet_transactions_balance_non_negative"),
        Index("ix_wallet_transactions_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    type: Mapped[WalletTransactionType] = mapped_column(
        Enum(WalletTransactionType, native_enum=False), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    source: Mapped[WalletTransactionSource] = mapped_column(
        Enum(WalletTransactionSource, native_enum=False), nullable=False
    )
    source_ref_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    source_ref_model: Mapped[WalletSourceRefModel | None] = mapped_column(
        Enum(WalletSourceRefModel, native_enum=False), nullable=True
    )
    order_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    gift_card_code: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)
    status: Mapped[WalletTransactionStatus] = mapped_column(
        Enum(WalletTransactionStatus, native_enum=False),
        nullable=False,
        default=WalletTransactionStatus.completed,
        index=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
