"""
订单身份解析 API 路由
"""
from typing import Optional
from pydantic import BaseModel, Field

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import BackfillReport, BackfillScope, ResolvedIdentities
from rf_core.config import get_settings
from rf_core.database import get_async_session
from rf_core.services.identity_service import IdentityService
from rf_core.utils.logger import get_logger
from rf_core.utils.errors import NotFoundError

logger = get_logger(__name__)

router = APIRouter(prefix="/identity", tags=["Identity"])


class ResolveOrderResponse(BaseModel):
    order_id: int
    persisted: bool
    identities: ResolvedIdentities


class ClassifyProductRequest(BaseModel):
    """线上订单商品识别请求"""
    title: Optional[str] = Field(None, description="商品标题")
    sku: Optional[str] = Field(None, description="SKU 描述")


class ClassifyProductResponse(BaseModel):
    matched: bool
    product_id: Optional[int] = None
    product_name: Optional[str] = None


@router.post("/orders/{order_id}/resolve", response_model=ResolveOrderResponse)
async def resolve_order(
    order_id: int,
    persist: bool = Query(False, description="是否写入新解析出的外键"),
    session: AsyncSession = Depends(get_async_session)
):
    """
    解析订单的推广员 / 商品 / 渠道外键
    """
    result = await IdentityService.resolve_order(session, order_id, persist=persist, settings=get_settings())
    if not result.success:
        raise NotFoundError(code=result.error_code or "ORDER_NOT_FOUND", resource=f"order {order_id}")

    return ResolveOrderResponse(
        order_id=order_id,
        persisted=bool(result.metadata and result.metadata.get("persisted")),
        identities=result.data,
    )


@router.post("/backfill", response_model=BackfillReport)
async def run_backfill(
    request: Request,
    scope: Optional[BackfillScope] = None,
    session: AsyncSession = Depends(get_async_session)
):
    """
    回填历史订单外键（可重复执行）
    """
    report = await IdentityService.run_backfill(
        session,
        scope or BackfillScope(),
        settings=get_settings(),
        guard=request.app.state.backfill_guard,
    )
    logger.info(f"回填完成: scanned={report.scanned_count}, updated={report.updated_count}")
    return report


@router.post("/products/classify", response_model=ClassifyProductResponse)
async def classify_product(
    request: ClassifyProductRequest,
    session: AsyncSession = Depends(get_async_session)
):
    """
    根据线上订单标题 / SKU 识别商品
    """
    product = await IdentityService.classify_product(session, request.title, request.sku)
    if product is None:
        return ClassifyProductResponse(matched=False)
    return ClassifyProductResponse(matched=True, product_id=product.id, product_name=product.name)
