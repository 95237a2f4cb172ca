"""
订单外键回填的数据库实现
"""
from typing import List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import ChannelEntry, OrderFacts, RegistrySnapshot
from rf_core.models.orders import Order
from rf_core.models.promoters import Promoter
from rf_core.services.registry_service import RegistryService
from rf_core.utils.logger import get_logger

logger = get_logger(__name__)


class SqlOrderLinkRepository:
    """基于 AsyncSession 的回填仓储

    每次写入后立即提交，中断时已回填的订单不会丢失；写入失败时回滚当前订单并抛出。
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_registry(self) -> RegistrySnapshot:
        return await RegistryService.load_registry(self.db)

    async def ensure_channel(self, name: str, settlement_by_completed: bool = True) -> Tuple[ChannelEntry, bool]:
        try:
            channel, created = await RegistryService.ensure_channel(self.db, name, settlement_by_completed)
            if created:
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return ChannelEntry.model_validate(channel), created

    async def link_promoter_channel(self, promoter_id: int, channel_id: int) -> bool:
        stmt = (
            update(Promoter)
            .where(Promoter.id == promoter_id, Promoter.channel_config_id.is_(None))
            .values(channel_config_id=channel_id)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result.rowcount > 0

    async def list_orders_missing_links(
        self, creator_id: Optional[int] = None, limit: Optional[int] = None
    ) -> List[OrderFacts]:
        stmt = (
            select(Order)
            .where(
                or_(
                    Order.promoter_id.is_(None),
                    Order.product_id.is_(None),
                    Order.channel_id.is_(None),
                )
            )
            .order_by(Order.id)
            .execution_options(populate_existing=True)
        )
        if creator_id is not None:
            stmt = stmt.where(Order.creator_id == creator_id)
        if limit:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return [OrderFacts.model_validate(order) for order in result.scalars().all()]

    async def set_order_links_if_null(
        self,
        order_id: int,
        promoter_id: Optional[int],
        product_id: Optional[int],
        channel_id: Optional[int],
    ) -> bool:
        """只为当前为空的外键赋值，写入后立即提交"""
        try:
            current = (
                await self.db.execute(
                    select(Order.promoter_id, Order.product_id, Order.channel_id).where(Order.id == order_id)
                )
            ).one_or_none()
            if current is None:
                return False

            values = {}
            if current.promoter_id is None and promoter_id is not None:
                values["promoter_id"] = promoter_id
            if current.product_id is None and product_id is not None:
                values["product_id"] = product_id
            if current.channel_id is None and channel_id is not None:
                values["channel_id"] = channel_id
            if not values:
                return False

            await self.db.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(**values)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.debug(f"回填订单外键: order_id={order_id}, values={values}")
        return True
