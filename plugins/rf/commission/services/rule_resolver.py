"""
阶梯提成规则解析
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from rf_core.utils.errors import ValidationError

from ..models.enums import RuleScope
from ..models.rules import CommissionTier


def sort_rules(rules: Iterable[CommissionTier]) -> List[CommissionTier]:
    """按 min_count 升序（稳定排序）"""
    return sorted(rules, key=lambda r: r.min_count)


def resolve_percentage(count: int, rules: List[CommissionTier]) -> Decimal:
    """
    根据单量返回适用的提成比例

    调用方需先按 min_count 升序排列。区间重叠时取第一条命中的规则，
    不做校验；没有规则命中时返回 0。

    Args:
        count: 单量
        rules: 已排序的规则列表

    Returns:
        提成百分比
    """
    for rule in rules:
        if rule.covers(count):
            return rule.percentage
    return Decimal("0")


def validate_rule_ranges(rules: Iterable[CommissionTier]) -> None:
    """
    保存规则前校验：同一 (作用对象, 渠道) 组合内区间不得重叠

    Raises:
        ValidationError: 区间非法或重叠
    """
    groups: Dict[Tuple[RuleScope, Optional[int]], List[CommissionTier]] = defaultdict(list)
    for rule in rules:
        if rule.percentage < 0 or rule.percentage > 100:
            raise ValidationError(
                code="COMMISSION_RULE_INVALID",
                detail=f"percentage {rule.percentage} out of range [0, 100]",
            )
        if rule.max_count is not None and rule.max_count < rule.min_count:
            raise ValidationError(
                code="COMMISSION_RULE_INVALID",
                detail=f"max_count {rule.max_count} is less than min_count {rule.min_count}",
            )
        groups[(rule.scope, rule.channel_id)].append(rule)

    for (scope, channel_id), group in groups.items():
        ordered = sort_rules(group)
        for prev, current in zip(ordered, ordered[1:]):
            # 前一档无上限，或上限覆盖到下一档起点
            if prev.max_count is None or prev.max_count >= current.min_count:
                upper = "∞" if prev.max_count is None else prev.max_count
                raise ValidationError(
                    code="COMMISSION_RULE_OVERLAP",
                    detail=(
                        f"rule ranges overlap for scope={scope.value} channel={channel_id}: "
                        f"[{prev.min_count}, {upper}] and [{current.min_count}, "
                        f"{'∞' if current.max_count is None else current.max_count}]"
                    ),
                )


@dataclass
class PartitionedRules:
    """按覆盖层级拆分后的规则"""

    default_user: List[CommissionTier] = field(default_factory=list)
    channel_user: Dict[int, List[CommissionTier]] = field(default_factory=dict)
    channel_promoter: Dict[int, List[CommissionTier]] = field(default_factory=dict)


def partition_rules(rules: Iterable[CommissionTier]) -> PartitionedRules:
    """
    拆分规则：全局员工规则 / 渠道员工规则 / 渠道推广员规则

    每组内部已排序。无渠道的推广员规则不参与计算。
    """
    default_user: List[CommissionTier] = []
    channel_user: Dict[int, List[CommissionTier]] = defaultdict(list)
    channel_promoter: Dict[int, List[CommissionTier]] = defaultdict(list)

    for rule in rules:
        if rule.scope == RuleScope.USER:
            if rule.channel_id is None:
                default_user.append(rule)
            else:
                channel_user[rule.channel_id].append(rule)
        elif rule.channel_id is not None:
            channel_promoter[rule.channel_id].append(rule)

    return PartitionedRules(
        default_user=sort_rules(default_user),
        channel_user={k: sort_rules(v) for k, v in channel_user.items()},
        channel_promoter={k: sort_rules(v) for k, v in channel_promoter.items()},
    )
