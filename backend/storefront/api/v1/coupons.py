from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.dependencies import get_current_user
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.schemas.coupon import (
    CouponSummary,
    CouponValidateRequest,
    CouponValidateResponse,
    PublicCouponRead,
)
from storefront.services import coupons as coupons_service

router = APIRouter(prefix="/coupons", tags=["coupons"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.post("/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    payload: CouponValidateRequest,
    session: SessionDep,
    current_user: CurrentUserDep,
) -> CouponValidateResponse:
    result = await coupons_service.validate_coupon(
        session,
        code=payload.code,
        cart_total=payload.cart_total,
        user_id=current_user.id,
    )
    return CouponValidateResponse(
        valid=result.valid,
        message=result.message,
        discount=result.discount,
        coupon=CouponSummary.model_validate(result.coupon) if result.coupon else None,
    )


@router.get("/public", response_model=list[PublicCouponRead])
async def public_coupons(session: SessionDep) -> list[PublicCouponRead]:
    coupons = await coupons_service.list_public_coupons(session)
    return [PublicCouponRead.model_validate(c) for c in coupons]
