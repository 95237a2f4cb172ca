"""
提成计算器

规则覆盖层级：全局员工规则 → 渠道员工规则 → 渠道推广员规则。
员工提成 = 阶梯提成（非推广员订单）+ 下级提成（推广员订单）+ 高单价提成（仅默认渠道的非推广员订单）。
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from rf_core.utils.logger import get_logger

from ..models.registry import RegistrySnapshot
from ..models.report import ChannelBreakdown, CommissionReport, PromoterLine, SubordinateSplit
from ..models.rules import AccountGroupRules
from ..models.stats import StatsRow
from .identity_resolver import IdentityResolver
from .rule_resolver import partition_rules, resolve_percentage

logger = get_logger(__name__)

HUNDRED = Decimal("100")


@dataclass
class _ChannelBucket:
    channel_id: Optional[int]
    first_label: str
    # 显示名称 → 汇总行，保持首次出现顺序
    lines: Dict[str, PromoterLine] = field(default_factory=dict)


class CommissionCalculator:
    """员工提成计算器"""

    def __init__(
        self,
        registry: RegistrySnapshot,
        resolver: Optional[IdentityResolver] = None,
        peer_keyword: str = "同行",
        self_label: str = "self",
        self_channel_label: str = "自主开发",
        unmarked_label: str = "未标记",
    ):
        self.registry = registry
        self.resolver = resolver or IdentityResolver(registry, self_label=self_label)
        self.peer_keyword = peer_keyword
        self.self_label = self_label
        self.self_channel_label = self_channel_label
        self.unmarked_label = unmarked_label

    def assign_channel(self, row: StatsRow) -> Optional[int]:
        """
        为统计行确定渠道

        顺序：显式渠道 → 已知推广员（先按 ID，再按联系人名称精确匹配）的渠道
        → 来源代码候选渠道 → 默认渠道（返回 None）
        """
        if row.channel_id is not None:
            return row.channel_id

        promoter = self.registry.promoter_by_id(row.promoter_id)
        channel = self.resolver.channel_for_promoter(promoter)
        if channel is None and row.contact_label:
            channel = self.resolver.channel_for_promoter(self.registry.promoter_by_name(row.contact_label))
        if channel is None:
            channel = self.resolver.resolve_channel_by_source(row.source)
        return channel.id if channel is not None else None

    def display_name(self, row: StatsRow) -> str:
        """明细显示名称：登记表中的推广员名 → 联系人标签 → 未标记"""
        promoter = self.registry.promoter_by_id(row.promoter_id)
        if promoter is not None:
            return promoter.name
        return row.contact_label or self.unmarked_label

    def _channel_name(self, bucket: _ChannelBucket) -> str:
        channel = self.registry.channel_by_id(bucket.channel_id)
        if channel is not None:
            return channel.name
        if bucket.first_label == self.self_label:
            return self.self_channel_label
        return bucket.first_label

    def calculate(
        self,
        user_id: int,
        rows: Iterable[StatsRow],
        group: Optional[AccountGroupRules] = None,
        user_name: Optional[str] = None,
    ) -> CommissionReport:
        """
        计算员工提成报表

        Args:
            user_id: 员工 ID
            rows: 该员工的统计行
            group: 所属账号组（规则与高单价比例），缺失时比例均为 0
            user_name: 员工名称

        Returns:
            提成报表
        """
        rows = list(rows)
        diagnostics: List[str] = []

        rules = group.rules if group else []
        high_ticket_rate = group.high_ticket_rate if group else Decimal("0")
        partitioned = partition_rules(rules)

        if group is None:
            diagnostics.append("NO_ACCOUNT_GROUP")
        else:
            diagnostics.extend(group.diagnostics)
            if not partitioned.default_user:
                diagnostics.append("NO_DEFAULT_USER_RULES")

        active_rows = [r for r in rows if r.order_count > 0]
        total_order_count = sum(r.order_count for r in active_rows)
        total_revenue = sum((r.total_revenue for r in active_rows), Decimal("0"))
        refunded_amount = sum((r.refunded_amount for r in rows), Decimal("0"))

        effective_base_rate = resolve_percentage(total_order_count, partitioned.default_user)

        # 分桶
        buckets: Dict[Optional[int], _ChannelBucket] = {}
        for row in active_rows:
            channel_id = self.assign_channel(row)
            label = row.contact_label or self.unmarked_label
            bucket = buckets.setdefault(channel_id, _ChannelBucket(channel_id=channel_id, first_label=label))

            name = self.display_name(row)
            line = bucket.lines.get(name)
            if line is None:
                line = bucket.lines[name] = PromoterLine(name=name)
            line.count += row.order_count
            line.revenue += row.total_revenue
            line.high_ticket_base += row.high_ticket_base

        promoter_names = self.registry.promoter_names
        report = CommissionReport(
            user_id=user_id,
            user_name=user_name,
            account_group_id=group.id if group else None,
            account_group_name=group.name if group else None,
            high_ticket_rate=high_ticket_rate,
            total_order_count=total_order_count,
            total_revenue=total_revenue,
            refunded_amount=refunded_amount,
            effective_base_rate=effective_base_rate,
            diagnostics=diagnostics,
        )
        subordinate = SubordinateSplit()

        for bucket in buckets.values():
            is_default = bucket.channel_id is None
            channel_user_rules = [] if is_default else partitioned.channel_user.get(bucket.channel_id, [])
            channel_promoter_rules = [] if is_default else partitioned.channel_promoter.get(bucket.channel_id, [])

            if channel_user_rules:
                channel_rate = resolve_percentage(total_order_count, channel_user_rules)
            else:
                channel_rate = effective_base_rate

            breakdown = ChannelBreakdown(
                channel_id=bucket.channel_id,
                channel_name=self._channel_name(bucket),
                employee_rate=channel_rate,
            )

            for line in bucket.lines.values():
                line.is_promoter = line.name in promoter_names
                line.account_rate = channel_rate if line.is_promoter else effective_base_rate
                line.account_commission = line.revenue * line.account_rate / HUNDRED

                if is_default and not line.is_promoter:
                    line.high_ticket_commission = line.high_ticket_base * high_ticket_rate / HUNDRED

                line.payout_rate = resolve_percentage(line.count, channel_promoter_rules)
                line.payout_commission = line.revenue * line.payout_rate / HUNDRED

                if line.is_promoter:
                    breakdown.subordinate += line.account_commission
                else:
                    breakdown.volume_gradient += line.account_commission
                breakdown.high_ticket += line.high_ticket_commission
                breakdown.promoter_commission += line.payout_commission

                breakdown.order_count += line.count
                breakdown.revenue += line.revenue
                breakdown.high_ticket_base += line.high_ticket_base
                breakdown.promoters.append(line)

            breakdown.employee_total = breakdown.volume_gradient + breakdown.subordinate + breakdown.high_ticket

            report.volume_gradient += breakdown.volume_gradient
            report.high_ticket += breakdown.high_ticket
            report.employee_total += breakdown.employee_total
            report.promoter_total += breakdown.promoter_commission

            subordinate.total += breakdown.subordinate
            if self.peer_keyword and self.peer_keyword in breakdown.channel_name:
                subordinate.peer += breakdown.subordinate
            else:
                subordinate.agent += breakdown.subordinate

            report.channels.append(breakdown)

        report.subordinate = subordinate

        if not report.check_balance():
            logger.error(
                "commission_balance_mismatch",
                user_id=user_id,
                employee_total=str(report.employee_total),
            )

        logger.debug(
            "commission_calculated",
            user_id=user_id,
            total_order_count=total_order_count,
            channels=len(report.channels),
            employee_total=str(report.employee_total),
        )
        return report
