"""
提成报表服务
"""
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import (
    CommissionReport,
    ContainmentPolicy,
    RegistrySnapshot,
    StatsPeriod,
)
from plugins.rf.commission.services import CommissionCalculator, IdentityResolver
from rf_core.config import Settings, get_settings
from rf_core.models.users import User
from rf_core.services.account_group_service import to_group_rules
from rf_core.services.base import ServiceResult
from rf_core.services.order_stats_service import OrderStatsService
from rf_core.services.registry_service import RegistryService
from rf_core.utils.logger import get_logger

logger = get_logger(__name__)


def build_calculator(registry: RegistrySnapshot, settings: Optional[Settings] = None) -> CommissionCalculator:
    """按配置创建提成计算器"""
    settings = settings or get_settings()
    resolver = IdentityResolver(
        registry,
        containment_policy=ContainmentPolicy(settings.containment_policy),
        self_label=settings.self_contact_label,
    )
    return CommissionCalculator(
        registry,
        resolver=resolver,
        peer_keyword=settings.peer_channel_keyword,
        self_label=settings.self_contact_label,
        self_channel_label=settings.self_channel_label,
        unmarked_label=settings.unmarked_label,
    )


class CommissionReportService:
    """提成报表服务"""

    @staticmethod
    async def _report_for_user(
        db: AsyncSession,
        user: User,
        period: Optional[StatsPeriod],
        calculator: CommissionCalculator,
    ) -> CommissionReport:
        group = to_group_rules(user.account_group) if user.account_group else None
        settlement_by_completed = group.settlement_by_completed if group else True

        rows = await OrderStatsService.query_stats(
            db,
            period=period,
            creator_id=user.id,
            settlement_by_completed=settlement_by_completed,
        )
        return calculator.calculate(user.id, rows, group=group, user_name=user.display_name)

    @staticmethod
    async def compute_commission_report(
        db: AsyncSession,
        user_id: int,
        period: Optional[StatsPeriod] = None,
        settings: Optional[Settings] = None,
    ) -> ServiceResult[CommissionReport]:
        """
        计算单个员工的提成报表

        Args:
            db: 数据库会话
            user_id: 员工 ID
            period: 统计周期，None 为累计
            settings: 配置

        Returns:
            ServiceResult，员工不存在时 error_code=USER_NOT_FOUND
        """
        user = await db.get(User, user_id, populate_existing=True)
        if user is None:
            return ServiceResult.error(f"用户 {user_id} 不存在", error_code="USER_NOT_FOUND")

        registry = await RegistryService.load_registry(db)
        calculator = build_calculator(registry, settings)
        report = await CommissionReportService._report_for_user(db, user, period, calculator)

        logger.info(
            f"提成报表: user_id={user_id}, orders={report.total_order_count}, "
            f"employee_total={report.employee_total}, diagnostics={report.diagnostics}"
        )
        return ServiceResult.ok(report, metadata={"period": (period or StatsPeriod()).type.value})

    @staticmethod
    async def compute_all_reports(
        db: AsyncSession,
        period: Optional[StatsPeriod] = None,
        settings: Optional[Settings] = None,
    ) -> List[CommissionReport]:
        """计算所有有订单的员工的提成报表；单个员工计算失败时记录日志并跳过"""
        registry = await RegistryService.load_registry(db)
        calculator = build_calculator(registry, settings)

        reports = []
        failed = 0
        for creator_id in await OrderStatsService.list_creator_ids(db):
            try:
                user = await db.get(User, creator_id, populate_existing=True)
                if user is None:
                    continue
                report = await CommissionReportService._report_for_user(db, user, period, calculator)
            except Exception as e:
                failed += 1
                logger.error(f"提成报表计算失败: user_id={creator_id}, error={e}", exc_info=True)
                await db.rollback()
                continue
            if report.total_order_count > 0 or report.refunded_amount > 0:
                reports.append(report)

        if failed:
            logger.warning(f"提成报表部分失败: succeeded={len(reports)}, failed={failed}")
        return reports
