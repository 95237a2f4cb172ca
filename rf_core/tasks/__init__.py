"""
RentFlow 后台任务
"""
from .scheduler import TaskScheduler, JobStats
from .backfill_task import BACKFILL_SERVICE_KEY, make_backfill_handler, register_backfill_job

__all__ = [
    "TaskScheduler",
    "JobStats",
    "BACKFILL_SERVICE_KEY",
    "make_backfill_handler",
    "register_backfill_job",
]
