"""
订单统计聚合器（内存版）

与 SQL 统计查询语义一致：按 (创建人, 来源, 推广员, 渠道, 联系人标签) 分组，
已关闭订单只计入退款金额。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from rf_core.utils.logger import get_logger

from ..models.enums import OrderStatus
from ..models.order import OrderFacts
from ..models.stats import StatsPeriod, StatsRow

logger = get_logger(__name__)

GroupKey = Tuple[Optional[int], Optional[str], Optional[int], Optional[int], Optional[str]]


def calculate_order_revenue(order: OrderFacts) -> Decimal:
    """订单收入 = 租金 + 保险 + 逾期费 + 续租费用合计"""
    overdue = order.overdue_fee if order.overdue_fee is not None else Decimal("0")
    extension_total = sum((ext.price for ext in order.extensions), Decimal("0"))
    return order.rent_price + order.insurance_price + overdue + extension_total


def high_ticket_base_of(order: OrderFacts) -> Decimal:
    """高单价基数：租金超出标准价的部分（缺少标准价按 0 处理）"""
    standard = order.standard_price if order.standard_price is not None else Decimal("0")
    excess = order.rent_price - standard
    return excess if excess > 0 else Decimal("0")


def _as_utc(value: datetime) -> datetime:
    # 无时区信息的时间按 UTC 处理
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def order_in_period(
    order: OrderFacts,
    window: Optional[Tuple[datetime, datetime]],
    settlement_by_completed: bool = True,
) -> bool:
    """
    判断订单是否落在结算窗口内

    Args:
        order: 订单
        window: 时间窗口，None 表示累计
        settlement_by_completed: True 时按完成时间结算，仅统计已完成订单

    Returns:
        是否计入
    """
    if window is None:
        return True

    start, end = window
    if settlement_by_completed:
        if order.status != OrderStatus.COMPLETED.value or order.completed_at is None:
            return False
        moment = order.completed_at
    else:
        if order.created_at is None:
            return False
        moment = order.created_at

    return start <= _as_utc(moment) <= end


@dataclass
class _Bucket:
    order_count: int = 0
    total_revenue: Decimal = Decimal("0")
    refunded_amount: Decimal = Decimal("0")
    high_ticket_base: Decimal = Decimal("0")


class StatsAggregator:
    """订单统计聚合器"""

    @staticmethod
    def group_key(order: OrderFacts) -> GroupKey:
        return (order.creator_id, order.source, order.promoter_id, order.channel_id, order.source_contact)

    def aggregate(
        self,
        orders: Iterable[OrderFacts],
        period: Optional[StatsPeriod] = None,
        settlement_for: Optional[Callable[[Optional[int]], bool]] = None,
    ) -> List[StatsRow]:
        """
        聚合订单为统计行

        Args:
            orders: 订单事实
            period: 统计周期，None 为累计
            settlement_for: 按创建人返回是否按完成时间结算，缺省为 True

        Returns:
            统计行列表（按首次出现顺序）
        """
        window = None
        if period is not None:
            if not period.is_valid:
                logger.warning("invalid_custom_period", start=str(period.start), end=str(period.end))
                return []
            window = period.window()

        buckets: Dict[GroupKey, _Bucket] = {}
        for order in orders:
            by_completed = settlement_for(order.creator_id) if settlement_for else True
            if not order_in_period(order, window, by_completed):
                continue

            bucket = buckets.setdefault(self.group_key(order), _Bucket())
            revenue = calculate_order_revenue(order)
            if order.is_closed:
                bucket.refunded_amount += revenue
            else:
                bucket.order_count += 1
                bucket.total_revenue += revenue
                bucket.high_ticket_base += high_ticket_base_of(order)

        return [
            StatsRow(
                creator_id=key[0],
                source=key[1],
                promoter_id=key[2],
                channel_id=key[3],
                contact_label=key[4],
                order_count=b.order_count,
                total_revenue=b.total_revenue,
                refunded_amount=b.refunded_amount,
                high_ticket_base=b.high_ticket_base,
            )
            for key, b in buckets.items()
        ]
