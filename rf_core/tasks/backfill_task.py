"""
定时回填任务
"""
from typing import Any, Dict, Optional

from plugins.rf.commission.models import BackfillScope
from rf_core.config import Settings, get_settings
from rf_core.database import DatabaseManager, get_db_manager
from rf_core.services.identity_service import BackfillGuard, IdentityService

BACKFILL_SERVICE_KEY = "rf.identity.backfill"


def make_backfill_handler(
    db_manager: Optional[DatabaseManager] = None,
    settings: Optional[Settings] = None,
    guard: Optional[BackfillGuard] = None,
):
    """创建回填任务处理函数"""

    async def backfill_handler(config_json: Dict[str, Any]) -> Dict[str, Any]:
        manager = db_manager or get_db_manager()
        scope = BackfillScope(
            creator_id=config_json.get("creator_id"),
            limit=config_json.get("limit"),
            dry_run=bool(config_json.get("dry_run", False)),
        )
        async with manager.get_session() as session:
            report = await IdentityService.run_backfill(
                session, scope, settings=settings or get_settings(), guard=guard
            )

        return {
            "message": f"scanned={report.scanned_count} updated={report.updated_count} failed={report.failed_count}",
            "report": report.model_dump(mode="json"),
        }

    return backfill_handler


def register_backfill_job(
    scheduler,
    settings: Optional[Settings] = None,
    db_manager: Optional[DatabaseManager] = None,
    guard: Optional[BackfillGuard] = None,
) -> bool:
    """注册回填任务；启用时按 cron 调度"""
    settings = settings or get_settings()
    scheduler.register_handler(BACKFILL_SERVICE_KEY, make_backfill_handler(db_manager, settings, guard))
    if not settings.backfill_enabled:
        return False
    return scheduler.add_service(BACKFILL_SERVICE_KEY, "cron", settings.backfill_cron)
