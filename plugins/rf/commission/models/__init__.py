"""
提成插件数据模型
"""

from .enums import (
    OrderStatus,
    RuleScope,
    RuleType,
    ContainmentPolicy,
    PeriodType,
    IdentityDimension,
    MatchStage,
)

from .order import ExtensionCharge, OrderFacts

from .stats import StatsRow, StatsPeriod

from .rules import CommissionTier, AccountGroupRules

from .registry import PromoterEntry, ChannelEntry, ProductEntry, RegistrySnapshot

from .report import (
    BALANCE_TOLERANCE,
    DEFAULT_CHANNEL_KEY,
    PromoterLine,
    ChannelBreakdown,
    SubordinateSplit,
    CommissionReport,
)

from .identity import IdentityMiss, ResolvedIdentities, BackfillScope, UnmatchedEntry, BackfillReport

__all__ = [
    # Enums
    "OrderStatus",
    "RuleScope",
    "RuleType",
    "ContainmentPolicy",
    "PeriodType",
    "IdentityDimension",
    "MatchStage",
    # Orders / stats
    "ExtensionCharge",
    "OrderFacts",
    "StatsRow",
    "StatsPeriod",
    # Rules
    "CommissionTier",
    "AccountGroupRules",
    # Registry
    "PromoterEntry",
    "ChannelEntry",
    "ProductEntry",
    "RegistrySnapshot",
    # Report
    "BALANCE_TOLERANCE",
    "DEFAULT_CHANNEL_KEY",
    "PromoterLine",
    "ChannelBreakdown",
    "SubordinateSplit",
    "CommissionReport",
    # Identity
    "IdentityMiss",
    "ResolvedIdentities",
    "BackfillScope",
    "UnmatchedEntry",
    "BackfillReport",
]
