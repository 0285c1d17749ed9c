from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import metrics
from storefront.core.config import settings
from storefront.models.coupon import Coupon, CouponUsage, DiscountType
from storefront.schemas.coupon import CouponCreate, CouponUpdate
from storefront.services import pricing

logger = logging.getLogger(__name__)

CouponStatusFilter = Literal["all", "active", "expired"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(dt: datetime | None) -> datetime | None:
    if not dt:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    message: str
    discount: Decimal | None = None
    coupon: Coupon | None = None


def _reject(code: str, message: str) -> CouponValidation:
    logger.debug("coupon_rejected", extra={"coupon_code": code, "reason": message})
    metrics.record_coupon_validation(False)
    return CouponValidation(valid=False, message=message)


def compute_discount(coupon: Coupon, cart_total: Decimal) -> Decimal:
    """Discount a coupon grants on ``cart_total``; never more than the cart itself."""
    total = pricing.to_decimal(cart_total)
    value = pricing.to_decimal(coupon.discount_value)
    if coupon.discount_type == DiscountType.percentage:
        discount = pricing.round_rupees(pricing.percentage_of(total, value))
        if coupon.max_discount is not None and discount > coupon.max_discount:
            discount = pricing.to_decimal(coupon.max_discount)
    else:
        discount = value
    discount = min(discount, total)
    return pricing.quantize_money(discount)


async def get_coupon_by_code(session: AsyncSession, *, code: str, active_only: bool = True) -> Coupon | None:
    cleaned = _normalize_code(code)
    if not cleaned:
        return None
    query = select(Coupon).where(Coupon.code == cleaned)
    if active_only:
        query = query.where(Coupon.is_active.is_(True))
    return (await session.execute(query)).scalar_one_or_none()


async def count_user_usages(session: AsyncSession, *, coupon_id: UUID, user_id: UUID) -> int:
    return int(
        (
            await session.execute(
                select(func.count())
                .select_from(CouponUsage)
                .where(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
            )
        ).scalar_one()
    )


async def validate_coupon(
    session: AsyncSession,
    *,
    code: str | None,
    cart_total: Decimal,
    user_id: UUID,
    now: datetime | None = None,
) -> CouponValidation:
    """Decide whether ``code`` applies to a cart of ``cart_total`` for ``user_id``.

    Checks run in a fixed order and the first failure is returned as a
    rejection. Nothing is written: redemption is a separate step
    (:func:`record_redemption`) owned by order confirmation.
    """
    cleaned = _normalize_code(code)
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Coupon code is required")

    now = _ensure_utc(now) or _now()
    total = pricing.to_decimal(cart_total)

    coupon = await get_coupon_by_code(session, code=cleaned)
    if coupon is None:
        return _reject(cleaned, "Invalid coupon code")

    start_date = _ensure_utc(coupon.start_date)
    if start_date and now < start_date:
        return _reject(cleaned, "This coupon is not active yet")

    end_date = _ensure_utc(coupon.end_date)
    if end_date and now > end_date:
        return _reject(cleaned, "This coupon has expired")

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return _reject(cleaned, "This coupon has reached its usage limit")

    if coupon.per_user_limit is not None:
        used = await count_user_usages(session, coupon_id=coupon.id, user_id=user_id)
        if used >= coupon.per_user_limit:
            return _reject(cleaned, f"You have already used this coupon {coupon.per_user_limit} time(s)")

    if coupon.min_order_amount is not None and total < coupon.min_order_amount:
        return _reject(cleaned, f"Minimum order amount is {pricing.format_rupees(coupon.min_order_amount)}")

    # TODO: evaluate first_order_only once order history is reachable from this service.

    discount = compute_discount(coupon, total)
    metrics.record_coupon_validation(True)
    return CouponValidation(
        valid=True,
        message=f"Coupon applied! You save {pricing.format_rupees(discount)}",
        discount=discount,
        coupon=coupon,
    )


async def record_redemption(
    session: AsyncSession,
    *,
    coupon_id: UUID,
    user_id: UUID,
    order_id: UUID,
    discount_applied: Decimal,
    now: datetime | None = None,
) -> CouponUsage:
    """Commit one redemption of a coupon for a confirmed order.

    Safe to call more than once for the same order. The global cap is
    enforced by a single conditional increment so concurrent checkouts
    cannot push ``used_count`` past ``usage_limit``.
    """
    existing = (
        (await session.execute(select(CouponUsage).where(CouponUsage.order_id == order_id))).scalars().first()
    )
    if existing:
        if existing.coupon_id != coupon_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order already redeemed another coupon")
        return existing

    # Lock coupon row to serialize per-user checks.
    coupon = (
        (await session.execute(select(Coupon).where(Coupon.id == coupon_id).with_for_update())).scalars().first()
    )
    if coupon is None:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")

    if coupon.per_user_limit is not None:
        used = await count_user_usages(session, coupon_id=coupon_id, user_id=user_id)
        if used >= coupon.per_user_limit:
            await session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon per-user limit reached")

    result = await session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon usage limit reached")

    usage = CouponUsage(
        coupon_id=coupon_id,
        user_id=user_id,
        order_id=order_id,
        discount_applied=pricing.quantize_money(discount_applied),
        used_at=_ensure_utc(now) or _now(),
    )
    session.add(usage)
    try:
        await session.commit()
    except IntegrityError:
        # Another request recorded this order first.
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order already has a coupon redemption")

    await session.refresh(coupon)
    await session.refresh(usage)
    metrics.record_coupon_redemption()
    logger.info(
        "coupon_redeemed",
        extra={
            "coupon_code": coupon.code,
            "user_id": str(user_id),
            "order_id": str(order_id),
            "used_count": coupon.used_count,
        },
    )
    return usage


async def list_public_coupons(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    limit: int | None = None,
) -> list[Coupon]:
    now = _ensure_utc(now) or _now()
    result = await session.execute(
        select(Coupon)
        .where(
            Coupon.is_active.is_(True),
            Coupon.is_public.is_(True),
            or_(Coupon.start_date.is_(None), Coupon.start_date <= now),
            or_(Coupon.end_date.is_(None), Coupon.end_date >= now),
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .order_by(Coupon.discount_value.desc(), Coupon.code)
        .limit(limit or settings.public_coupons_limit)
    )
    return list(result.scalars().all())


async def list_coupons(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    status_filter: CouponStatusFilter = "all",
    search: str | None = None,
    now: datetime | None = None,
) -> tuple[list[Coupon], int]:
    now = _ensure_utc(now) or _now()
    filters = []
    if status_filter == "active":
        filters.append(Coupon.is_active.is_(True))
        filters.append(or_(Coupon.end_date.is_(None), Coupon.end_date >= now))
    elif status_filter == "expired":
        filters.append(or_(Coupon.is_active.is_(False), Coupon.end_date < now))
    needle = (search or "").strip()
    if needle:
        pattern = f"%{needle}%"
        filters.append(or_(Coupon.code.ilike(pattern), Coupon.description.ilike(pattern)))

    total = int((await session.execute(select(func.count()).select_from(Coupon).where(*filters))).scalar_one())
    result = await session.execute(
        select(Coupon)
        .where(*filters)
        .order_by(Coupon.created_at.desc(), Coupon.code)
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def get_coupon(session: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await session.get(Coupon, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon


async def create_coupon(session: AsyncSession, payload: CouponCreate, *, created_by: UUID | None = None) -> Coupon:
    existing = await get_coupon_by_code(session, code=payload.code, active_only=False)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon code already exists")

    coupon = Coupon(**payload.model_dump(), used_count=0, created_by_user_id=created_by)
    session.add(coupon)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon code already exists")
    await session.refresh(coupon)
    logger.info("coupon_created", extra={"coupon_code": coupon.code, "discount_type": coupon.discount_type.value})
    return coupon


def _check_coupon_rules(coupon: Coupon) -> None:
    if coupon.discount_type == DiscountType.percentage and coupon.discount_value > 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage discount cannot exceed 100%")
    start_date = _ensure_utc(coupon.start_date)
    end_date = _ensure_utc(coupon.end_date)
    if start_date and end_date and end_date <= start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")
    if coupon.usage_limit is not None and coupon.usage_limit < coupon.used_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Usage limit cannot be lower than the number of redemptions",
        )


async def update_coupon(session: AsyncSession, coupon_id: UUID, payload: CouponUpdate) -> Coupon:
    coupon = await get_coupon(session, coupon_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(coupon, field, value)
    try:
        _check_coupon_rules(coupon)
    except HTTPException:
        await session.rollback()
        raise
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    return coupon


async def deactivate_coupon(session: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await get_coupon(session, coupon_id)
    if coupon.is_active:
        coupon.is_active = False
        session.add(coupon)
        await session.commit()
        await session.refresh(coupon)
        logger.info("coupon_deactivated", extra={"coupon_code": coupon.code})
    return coupon
