from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.v1 import admin_coupons, coupons, wallet
from storefront.core.metrics import snapshot as metrics_snapshot
from storefront.db.session import get_session

api_router = APIRouter()

api_router.include_router(coupons.router)
api_router.include_router(admin_coupons.router)
api_router.include_router(wallet.router)
api_router.include_router(wallet.admin_router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, str]:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable")
    return {"status": "ready"}


@api_router.get("/metrics", tags=["metrics"])
def metrics() -> dict[str, int]:
    return metrics_snapshot()
