#!/usr/bin/env python3
"""
回填订单外键脚本

为缺少推广员 / 商品 / 渠道外键的历史订单解析并写入外键（只填空值，可重复执行）

用法:
    python scripts/backfill_order_links.py
    python scripts/backfill_order_links.py --creator-id 3 --limit 500
    python scripts/backfill_order_links.py --dry-run
"""
import argparse
import asyncio
import sys
import os

# 添加项目根目录到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from plugins.rf.commission.models import BackfillScope
from rf_core.config import get_settings
from rf_core.database import get_db_manager
from rf_core.services.identity_service import IdentityService
from rf_core.utils.logger import setup_logging


async def backfill(scope: BackfillScope):
    """执行回填并打印结果"""
    settings = get_settings()
    db_manager = get_db_manager()

    try:
        async with db_manager.get_session() as db:
            print("开始回填订单外键..." + ("（演练模式，不写入）" if scope.dry_run else ""))
            report = await IdentityService.run_backfill(db, scope, settings=settings)
    finally:
        await db_manager.close()

    print(f"\n扫描订单: {report.scanned_count}")
    print(f"更新订单: {report.updated_count}")
    print(f"失败订单: {report.failed_count}")
    print(f"补全推广员渠道: {report.promoters_linked}")
    print(f"未匹配项: {report.unmatched_total}")

    if report.unmatched_log:
        print(f"\n未匹配明细（前 {len(report.unmatched_log)} 条）:")
        for entry in report.unmatched_log:
            print(f"  [订单 {entry.order_no}] {entry.dimension.value}: \"{entry.label}\"")

    return report


def main():
    parser = argparse.ArgumentParser(description='回填订单的推广员 / 商品 / 渠道外键')
    parser.add_argument('--creator-id', type=int, help='只处理该员工录入的订单')
    parser.add_argument('--limit', type=int, help='最多处理的订单数')
    parser.add_argument('--dry-run', action='store_true', help='只解析不写入')
    parser.add_argument('--log-level', default='WARNING', help='日志级别')

    args = parser.parse_args()

    setup_logging(log_level=args.log_level, log_format="text")
    scope = BackfillScope(creator_id=args.creator_id, limit=args.limit, dry_run=args.dry_run)
    report = asyncio.run(backfill(scope))
    sys.exit(1 if report.failed_count else 0)


if __name__ == "__main__":
    main()
