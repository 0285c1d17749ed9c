from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from storefront.models.coupon import DiscountType


def _normalize_code(value: str) -> str:
    return (value or "").strip().upper()


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CouponValidateRequest(BaseModel):
    code: str | None = None
    cart_total: Decimal = Field(ge=0)


class CouponSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Decimal | None = None
    description: str


class CouponValidateResponse(BaseModel):
    valid: bool
    message: str
    discount: Decimal | None = None
    coupon: CouponSummary | None = None


class PublicCouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    description: str
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Decimal | None = None
    max_discount: Decimal | None = None
    end_date: datetime | None = None
    terms_and_conditions: str | None = None


class CouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str | None = None
    description: str
    terms_and_conditions: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Decimal | None = None
    max_discount: Decimal | None = None
    usage_limit: int | None = None
    used_count: int
    per_user_limit: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool
    is_public: bool
    first_order_only: bool
    created_by_user_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str | None = Field(default=None, max_length=100)
    description: str = Field(default="", max_length=500)
    terms_and_conditions: str | None = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount: Decimal | None = Field(default=None, gt=0)
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    is_public: bool = False
    first_order_only: bool = False

    @field_validator("code", mode="before")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return _normalize_code(value)

    @field_validator("code")
    @classmethod
    def _code_charset(cls, value: str) -> str:
        if not value.isascii() or not value.isalnum():
            raise ValueError("Code can only contain letters and numbers")
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_in_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_rules(self) -> "CouponCreate":
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100%")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class CouponUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    terms_and_conditions: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount: Decimal | None = Field(default=None, gt=0)
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    is_public: bool | None = None
    first_order_only: bool | None = None

    @field_validator("description", "discount_type", "discount_value", "is_active", "is_public", "first_order_only")
    @classmethod
    def _not_null(cls, value):
        # These columns can be changed but never cleared.
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_in_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class CouponListResponse(BaseModel):
    items: list[CouponRead]
    total: int
    page: int
    limit: int
    pages: int


class CouponRedemptionCreate(BaseModel):
    user_id: UUID
    order_id: UUID
    discount_applied: Decimal = Field(ge=0)


class CouponUsageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coupon_id: UUID
    user_id: UUID
    order_id: UUID
    discount_applied: Decimal
    used_at: datetime
