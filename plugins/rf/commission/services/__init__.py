"""
提成插件服务层
"""

from .rule_resolver import PartitionedRules, partition_rules, resolve_percentage, sort_rules, validate_rule_ranges
from .stats_aggregator import (
    StatsAggregator,
    calculate_order_revenue,
    high_ticket_base_of,
    order_in_period,
)
from .identity_resolver import (
    SOURCE_CHANNEL_CANDIDATES,
    IdentityResolver,
    channel_candidates,
    load_product_aliases,
    normalize_label,
)
from .product_matcher import match_product_by_keywords, match_product_by_title, normalize_text
from .commission_calculator import CommissionCalculator
from .backfill_orchestrator import BackfillOrchestrator, OrderLinkRepository

__all__ = [
    "PartitionedRules",
    "partition_rules",
    "resolve_percentage",
    "sort_rules",
    "validate_rule_ranges",
    "StatsAggregator",
    "calculate_order_revenue",
    "high_ticket_base_of",
    "order_in_period",
    "SOURCE_CHANNEL_CANDIDATES",
    "IdentityResolver",
    "channel_candidates",
    "load_product_aliases",
    "normalize_label",
    "match_product_by_keywords",
    "match_product_by_title",
    "normalize_text",
    "CommissionCalculator",
    "BackfillOrchestrator",
    "OrderLinkRepository",
]
