from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.dependencies import require_admin
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.schemas.coupon import (
    CouponCreate,
    CouponListResponse,
    CouponRead,
    CouponRedemptionCreate,
    CouponUpdate,
    CouponUsageRead,
)
from storefront.services import coupons as coupons_service

router = APIRouter(prefix="/admin/coupons", tags=["admin-coupons"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AdminDep = Annotated[User, Depends(require_admin)]
PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=100)]
StatusQuery = Annotated[coupons_service.CouponStatusFilter, Query(alias="status")]
SearchQuery = Annotated[str | None, Query(max_length=100)]


@router.get("", response_model=CouponListResponse)
async def admin_list_coupons(
    session: SessionDep,
    _: AdminDep,
    page: PageQuery = 1,
    limit: LimitQuery = 20,
    status_filter: StatusQuery = "all",
    search: SearchQuery = None,
) -> CouponListResponse:
    items, total = await coupons_service.list_coupons(
        session, page=page, limit=limit, status_filter=status_filter, search=search
    )
    return CouponListResponse(
        items=[CouponRead.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit,
        pages=coupons_service.page_count(total, limit),
    )


@router.post("", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def admin_create_coupon(payload: CouponCreate, session: SessionDep, admin: AdminDep) -> CouponRead:
    coupon = await coupons_service.create_coupon(session, payload, created_by=admin.id)
    return CouponRead.model_validate(coupon)


@router.get("/{coupon_id}", response_model=CouponRead)
async def admin_get_coupon(coupon_id: UUID, session: SessionDep, _: AdminDep) -> CouponRead:
    return CouponRead.model_validate(await coupons_service.get_coupon(session, coupon_id))


@router.patch("/{coupon_id}", response_model=CouponRead)
async def admin_update_coupon(
    coupon_id: UUID, payload: CouponUpdate, session: SessionDep, _: AdminDep
) -> CouponRead:
    return CouponRead.model_validate(await coupons_service.update_coupon(session, coupon_id, payload))


@router.delete("/{coupon_id}", response_model=CouponRead)
async def admin_deactivate_coupon(coupon_id: UUID, session: SessionDep, _: AdminDep) -> CouponRead:
    return CouponRead.model_validate(await coupons_service.deactivate_coupon(session, coupon_id))


@router.post("/{coupon_id}/redemptions", response_model=CouponUsageRead, status_code=status.HTTP_201_CREATED)
async def admin_record_redemption(
    coupon_id: UUID, payload: CouponRedemptionCreate, session: SessionDep, _: AdminDep
) -> CouponUsageRead:
    usage = await coupons_service.record_redemption(
        session,
        coupon_id=coupon_id,
        user_id=payload.user_id,
        order_id=payload.order_id,
        discount_applied=payload.discount_applied,
    )
    return CouponUsageRead.model_validate(usage)
