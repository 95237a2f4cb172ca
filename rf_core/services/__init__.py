"""
RentFlow 服务层
"""
from .base import ServiceResult
from .registry_service import RegistryService
from .order_stats_service import OrderStatsService
from .account_group_service import AccountGroupService, to_group_rules
from .commission_report_service import CommissionReportService, build_calculator
from .order_link_repository import SqlOrderLinkRepository
from .identity_service import BackfillGuard, IdentityService

__all__ = [
    "ServiceResult",
    "RegistryService",
    "OrderStatsService",
    "AccountGroupService",
    "to_group_rules",
    "CommissionReportService",
    "build_calculator",
    "SqlOrderLinkRepository",
    "IdentityService",
    "BackfillGuard",
]
