"""
任务调度器 - 基于APScheduler
由应用生命周期创建并挂在 app.state 上，不使用全局单例
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Callable, Any, Awaitable
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError

from rf_core.utils.logger import get_logger, LogContext

logger = get_logger(__name__)

JobHandler = Callable[[Dict[str, Any]], Awaitable[Optional[Dict[str, Any]]]]


@dataclass
class JobStats:
    """任务执行统计"""
    run_count: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    last_run_at: Optional[datetime] = None
    last_run_status: Optional[str] = None
    last_run_message: str = ""


class TaskScheduler:
    """任务调度器 - 管理后台任务"""

    def __init__(self, timezone_name: str = "UTC"):
        self.scheduler = AsyncIOScheduler(
            timezone=timezone_name,
            job_defaults={
                'coalesce': True,  # 合并多个pending的相同任务
                'max_instances': 1,  # 同一任务不并发执行
                'misfire_grace_time': 300  # 允许延迟5分钟
            }
        )
        self.timezone_name = timezone_name
        self.registered_handlers: Dict[str, JobHandler] = {}
        self.stats: Dict[str, JobStats] = {}
        self._running_jobs: set = set()  # 正在运行的任务

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def register_handler(self, service_key: str, handler: JobHandler):
        """
        注册服务处理函数

        Args:
            service_key: 服务唯一标识
            handler: 异步处理函数，接收服务配置
        """
        self.registered_handlers[service_key] = handler
        self.stats.setdefault(service_key, JobStats())
        logger.info(f"Registered handler for service: {service_key}")

    def is_running(self, service_key: str) -> bool:
        return service_key in self._running_jobs

    async def start(self):
        """启动调度器"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Task scheduler started")

    async def shutdown(self, timeout: float = 30):
        """关闭调度器，等待正在执行的任务完成"""
        if self._running_jobs:
            logger.info(f"Waiting for {len(self._running_jobs)} running jobs to complete...")
            try:
                await asyncio.wait_for(
                    asyncio.gather(*[self._wait_for_job(job_id) for job_id in list(self._running_jobs)]),
                    timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for jobs to complete, shutting down anyway")

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Task scheduler shut down")

    async def _wait_for_job(self, job_id: str):
        while job_id in self._running_jobs:
            await asyncio.sleep(0.5)

    async def _execute(self, service_key: str, config_json: Dict[str, Any], trigger: str) -> Optional[Dict[str, Any]]:
        """执行一次任务；上一次尚未结束时跳过"""
        stats = self.stats.setdefault(service_key, JobStats())
        if service_key in self._running_jobs:
            stats.skipped_count += 1
            logger.warning(f"Service {service_key} is already running, skipping this execution")
            return None

        handler = self.registered_handlers[service_key]
        self._running_jobs.add(service_key)
        run_id = f"{service_key}_{trigger}_{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}"

        with LogContext(trace_id=run_id, component="scheduler"):
            logger.info(f"[{run_id}] Starting service execution: {service_key}")
            try:
                result = await handler(config_json or {})
                stats.success_count += 1
                stats.last_run_status = "success"
                stats.last_run_message = (result or {}).get("message", "")
                logger.info(f"[{run_id}] Service executed successfully: {service_key}")
                return result
            except Exception as e:
                stats.error_count += 1
                stats.last_run_status = "failed"
                stats.last_run_message = str(e)[:500]
                logger.error(f"[{run_id}] Service execution failed: {service_key}, error: {e}", exc_info=True)
                return None
            finally:
                stats.run_count += 1
                stats.last_run_at = datetime.now(timezone.utc)
                self._running_jobs.discard(service_key)

    def add_service(
        self,
        service_key: str,
        service_type: str,
        schedule_config: str,
        config_json: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        添加服务到调度器

        Args:
            service_key: 服务唯一标识
            service_type: 调度类型 (cron | interval)
            schedule_config: 调度配置（cron表达式或间隔秒数）
            config_json: 服务特定配置

        Returns:
            是否已添加
        """
        if service_key not in self.registered_handlers:
            logger.warning(f"No handler registered for service: {service_key}, skipping")
            return False

        if service_type == "cron":
            trigger = CronTrigger.from_crontab(schedule_config, timezone=self.timezone_name)
        elif service_type == "interval":
            trigger = IntervalTrigger(seconds=int(schedule_config), timezone=self.timezone_name)
        else:
            raise ValueError(f"Unknown service_type: {service_type}")

        async def job_wrapper():
            await self._execute(service_key, config_json or {}, "scheduled")

        self.scheduler.add_job(
            job_wrapper,
            trigger=trigger,
            id=service_key,
            name=service_key,
            replace_existing=True
        )

        logger.info(f"Service added to scheduler: {service_key}, type={service_type}, config={schedule_config}")
        return True

    def remove_service(self, service_key: str):
        try:
            self.scheduler.remove_job(service_key)
            logger.info(f"Service removed from scheduler: {service_key}")
        except JobLookupError:
            logger.warning(f"Service not found in scheduler: {service_key}")

    async def run_now(self, service_key: str, config_json: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        立即执行一次服务并等待结果

        Raises:
            ValueError: 未注册处理函数
        """
        if service_key not in self.registered_handlers:
            raise ValueError(f"No handler registered for service: {service_key}")
        return await self._execute(service_key, config_json or {}, "manual")
