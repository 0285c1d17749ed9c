from storefront.db.base import Base  # noqa: F401
from storefront.models.user import User, UserRole  # noqa: F401
from storefront.models.coupon import Coupon, CouponUsage, DiscountType  # noqa: F401
from storefront.models.wallet import (  # noqa: F401
    WalletSourceRefModel,
    WalletTransaction,
    WalletTransactionSource,
    WalletTransactionStatus,
    WalletTransactionType,
)

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "WalletTransaction",
    "WalletTransactionType",
    "WalletTransactionSource",
    "WalletTransactionStatus",
    "WalletSourceRefModel",
]
