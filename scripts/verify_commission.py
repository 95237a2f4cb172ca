#!/usr/bin/env python3
"""
核对员工提成脚本

打印指定员工的提成报表（按渠道拆分），校验 阶梯 + 下级 + 高单价 == 员工提成合计，
并用内存聚合器复核 SQL 统计结果。

用法:
    python scripts/verify_commission.py --username alice
    python scripts/verify_commission.py --user-id 3 --period monthly --start 2026-09-01
"""
import argparse
import asyncio
import sys
import os
from datetime import date

# 添加项目根目录到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from plugins.rf.commission.models import CommissionReport, PeriodType, StatsPeriod
from plugins.rf.commission.services import StatsAggregator
from rf_core.config import get_settings
from rf_core.database import get_db_manager
from rf_core.models.users import User
from rf_core.services.commission_report_service import CommissionReportService
from rf_core.services.order_stats_service import OrderStatsService
from rf_core.utils.logger import setup_logging


def print_report(report: CommissionReport):
    print(f"员工: {report.user_name} (ID={report.user_id})")
    print(f"账号组: {report.account_group_name or '无'}")
    print(f"总单量: {report.total_order_count}")
    print(f"总收入: {report.total_revenue:.2f}")
    print(f"退款金额: {report.refunded_amount:.2f}")
    print(f"基础比例: {report.effective_base_rate}%")
    print(f"高单价比例: {report.high_ticket_rate}%")
    if report.diagnostics:
        print(f"诊断: {', '.join(report.diagnostics)}")

    print("\n--- 渠道明细 ---")
    for channel in report.channels:
        print(f"渠道: {channel.channel_name} (比例 {channel.employee_rate}%)")
        print(f"  阶梯提成: {channel.volume_gradient:.2f}")
        print(f"  下级提成: {channel.subordinate:.2f}")
        print(f"  高单价提成: {channel.high_ticket:.2f}")
        print(f"  员工提成合计: {channel.employee_total:.2f}")
        print(f"  推广员提成: {channel.promoter_commission:.2f}")

    print("\n--- 合计 ---")
    print(f"阶梯提成: {report.volume_gradient:.2f}")
    print(f"下级提成: {report.subordinate.total:.2f}")
    print(f"  - 同行: {report.subordinate.peer:.2f}")
    print(f"  - 代理: {report.subordinate.agent:.2f}")
    print(f"高单价提成: {report.high_ticket:.2f}")
    print(f"员工提成合计: {report.employee_total:.2f}")
    print(f"推广员提成合计: {report.promoter_total:.2f}")


async def verify(user_id: int = None, username: str = None, period: StatsPeriod = None) -> bool:
    """核对提成，返回是否全部通过"""
    settings = get_settings()
    db_manager = get_db_manager()

    try:
        async with db_manager.get_session() as db:
            if user_id is None:
                user = (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()
                if not user:
                    print(f"用户 {username} 不存在")
                    return False
                user_id = user.id

            result = await CommissionReportService.compute_commission_report(db, user_id, period, settings=settings)
            if not result.success:
                print(result.error)
                return False
            report = result.data
            print_report(report)

            ok = report.check_balance()
            print(f"\n合计校验 (阶梯 + 下级 + 高单价): {'通过' if ok else '不一致'}")

            # SQL 统计与内存聚合比对
            user = await db.get(User, user_id)
            settlement_by_completed = user.account_group.settlement_by_completed if user.account_group else True
            sql_rows = await OrderStatsService.query_stats(
                db, period=period, creator_id=user_id, settlement_by_completed=settlement_by_completed
            )
            facts = await OrderStatsService.load_order_facts(db, creator_id=user_id)
            memory_rows = StatsAggregator().aggregate(
                facts, period=period, settlement_for=lambda _: settlement_by_completed
            )

            sql_count = sum(r.order_count for r in sql_rows)
            memory_count = sum(r.order_count for r in memory_rows)
            sql_revenue = sum(r.total_revenue for r in sql_rows)
            memory_revenue = sum(r.total_revenue for r in memory_rows)
            stats_ok = sql_count == memory_count and sql_revenue == memory_revenue
            print(
                f"统计复核 (SQL vs 内存): 单量 {sql_count}/{memory_count}, "
                f"收入 {sql_revenue}/{memory_revenue} -> {'通过' if stats_ok else '不一致'}"
            )
            return ok and stats_ok
    finally:
        await db_manager.close()


def main():
    parser = argparse.ArgumentParser(description='核对员工提成计算')
    parser.add_argument('--user-id', type=int, help='员工ID')
    parser.add_argument('--username', help='员工登录名')
    parser.add_argument('--period', choices=[p.value for p in PeriodType], default=PeriodType.CUMULATIVE.value)
    parser.add_argument('--start', type=date.fromisoformat, help='起始日期 YYYY-MM-DD')
    parser.add_argument('--end', type=date.fromisoformat, help='结束日期 YYYY-MM-DD')

    args = parser.parse_args()
    if args.user_id is None and not args.username:
        parser.error('需要 --user-id 或 --username')

    setup_logging(log_level="WARNING", log_format="text")
    period = StatsPeriod(type=PeriodType(args.period), start=args.start, end=args.end)
    ok = asyncio.run(verify(args.user_id, args.username, period))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
