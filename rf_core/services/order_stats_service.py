"""
订单统计服务（SQL 聚合）

与插件内的 StatsAggregator 语义一致，生产环境走数据库聚合。
"""
from typing import List, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import OrderFacts, OrderStatus, StatsPeriod, StatsRow
from rf_core.models.orders import Order, OrderExtension
from rf_core.utils.logger import get_logger

logger = get_logger(__name__)


class OrderStatsService:
    """订单统计服务"""

    @staticmethod
    def _period_conditions(period: Optional[StatsPeriod], settlement_by_completed: bool) -> list:
        if period is None:
            return []
        window = period.window()
        if window is None:
            return []

        start, end = window
        if settlement_by_completed:
            return [
                Order.status == OrderStatus.COMPLETED.value,
                Order.completed_at.is_not(None),
                Order.completed_at >= start,
                Order.completed_at <= end,
            ]
        return [Order.created_at >= start, Order.created_at <= end]

    @staticmethod
    async def query_stats(
        db: AsyncSession,
        period: Optional[StatsPeriod] = None,
        creator_id: Optional[int] = None,
        settlement_by_completed: bool = True,
    ) -> List[StatsRow]:
        """
        按 (创建人, 来源, 推广员, 渠道, 联系人) 聚合订单

        Args:
            db: 数据库会话
            period: 统计周期，None 为累计
            creator_id: 限定创建人，None 为全部
            settlement_by_completed: 按完成时间结算

        Returns:
            校验后的统计行
        """
        if period is not None and not period.is_valid:
            logger.warning(f"自定义周期缺少起止日期: start={period.start}, end={period.end}")
            return []

        ext_sums = (
            select(
                OrderExtension.order_id.label("order_id"),
                func.sum(OrderExtension.price).label("ext_total"),
            )
            .group_by(OrderExtension.order_id)
            .subquery()
        )

        revenue = (
            Order.rent_price
            + Order.insurance_price
            + func.coalesce(Order.overdue_fee, 0)
            + func.coalesce(ext_sums.c.ext_total, 0)
        )
        closed = Order.status == OrderStatus.CLOSED.value
        active = Order.status != OrderStatus.CLOSED.value

        stmt = (
            select(
                Order.creator_id.label("creator_id"),
                Order.source.label("source"),
                Order.promoter_id.label("promoter_id"),
                Order.channel_id.label("channel_id"),
                Order.source_contact.label("contact_label"),
                func.sum(case((active, 1), else_=0)).label("order_count"),
                func.sum(case((active, revenue), else_=0)).label("total_revenue"),
                func.sum(case((closed, revenue), else_=0)).label("refunded_amount"),
                func.sum(
                    case(
                        (and_(active, Order.rent_price > Order.standard_price), Order.rent_price - Order.standard_price),
                        else_=0,
                    )
                ).label("high_ticket_base"),
            )
            .select_from(Order)
            .outerjoin(ext_sums, ext_sums.c.order_id == Order.id)
            .group_by(
                Order.creator_id,
                Order.source,
                Order.promoter_id,
                Order.channel_id,
                Order.source_contact,
            )
        )

        if creator_id is not None:
            stmt = stmt.where(Order.creator_id == creator_id)
        for condition in OrderStatsService._period_conditions(period, settlement_by_completed):
            stmt = stmt.where(condition)

        result = await db.execute(stmt)
        return [StatsRow.model_validate(dict(row)) for row in result.mappings().all()]

    @staticmethod
    async def load_order_facts(db: AsyncSession, creator_id: Optional[int] = None) -> List[OrderFacts]:
        """加载订单事实（供内存聚合 / 核对使用）"""
        stmt = select(Order).order_by(Order.id).execution_options(populate_existing=True)
        if creator_id is not None:
            stmt = stmt.where(Order.creator_id == creator_id)
        result = await db.execute(stmt)
        return [OrderFacts.model_validate(order) for order in result.scalars().all()]

    @staticmethod
    async def list_creator_ids(db: AsyncSession) -> List[int]:
        """有订单的创建人"""
        stmt = select(Order.creator_id).where(Order.creator_id.is_not(None)).distinct().order_by(Order.creator_id)
        result = await db.execute(stmt)
        return [row for row in result.scalars().all()]
