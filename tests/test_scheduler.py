"""
任务调度与定时回填测试
"""
import pytest

from rf_core.config import Settings
from rf_core.services import BackfillGuard
from rf_core.tasks import BACKFILL_SERVICE_KEY, TaskScheduler, make_backfill_handler, register_backfill_job
from rf_core.utils.errors import ConflictError


@pytest.fixture
def scheduler():
    return TaskScheduler()


async def test_run_now_records_stats(scheduler):
    calls = []

    async def handler(config):
        calls.append(config)
        return {"message": "done"}

    scheduler.register_handler("demo", handler)
    result = await scheduler.run_now("demo", {"limit": 5})

    assert result == {"message": "done"}
    assert calls == [{"limit": 5}]
    stats = scheduler.stats["demo"]
    assert (stats.run_count, stats.success_count, stats.error_count) == (1, 1, 0)
    assert stats.last_run_status == "success"
    assert stats.last_run_message == "done"
    assert not scheduler.is_running("demo")


async def test_run_now_failure_is_recorded(scheduler):
    async def handler(config):
        raise RuntimeError("boom")

    scheduler.register_handler("demo", handler)

    assert await scheduler.run_now("demo") is None
    stats = scheduler.stats["demo"]
    assert stats.error_count == 1
    assert stats.last_run_status == "failed"
    assert "boom" in stats.last_run_message


async def test_run_now_skips_when_already_running(scheduler):
    async def handler(config):
        return {}

    scheduler.register_handler("demo", handler)
    scheduler._running_jobs.add("demo")

    assert await scheduler.run_now("demo") is None
    assert scheduler.stats["demo"].skipped_count == 1
    assert scheduler.stats["demo"].run_count == 0


async def test_run_now_requires_handler(scheduler):
    with pytest.raises(ValueError):
        await scheduler.run_now("missing")


async def test_add_and_remove_service(scheduler):
    async def handler(config):
        return {}

    assert scheduler.add_service("demo", "cron", "0 * * * *") is False

    scheduler.register_handler("demo", handler)
    assert scheduler.add_service("demo", "cron", "0 * * * *") is True
    assert scheduler.scheduler.get_job("demo") is not None

    with pytest.raises(ValueError):
        scheduler.add_service("demo", "weekly", "1")

    scheduler.remove_service("demo")
    assert scheduler.scheduler.get_job("demo") is None


async def test_start_and_shutdown(scheduler):
    await scheduler.start()
    assert scheduler.running
    await scheduler.shutdown(timeout=1)


async def test_register_backfill_job_respects_switch(scheduler):
    assert register_backfill_job(scheduler, settings=Settings(_env_file=None)) is False
    assert BACKFILL_SERVICE_KEY in scheduler.registered_handlers
    assert scheduler.scheduler.get_job(BACKFILL_SERVICE_KEY) is None

    enabled = Settings(_env_file=None, backfill_enabled=True, backfill_cron="15 2 * * *")
    assert register_backfill_job(scheduler, settings=enabled) is True
    assert scheduler.scheduler.get_job(BACKFILL_SERVICE_KEY) is not None


async def test_backfill_handler_runs_against_database(db_manager, seeded, settings):
    handler = make_backfill_handler(db_manager, settings)

    result = await handler({"creator_id": seeded["alice"]})

    assert result["report"]["scanned_count"] == 4
    assert result["report"]["updated_count"] == 4
    assert "updated=4" in result["message"]

    again = await handler({})
    assert again["report"]["updated_count"] == 0


async def test_backfill_handler_shares_guard(db_manager, seeded, settings):
    guard = BackfillGuard()
    handler = make_backfill_handler(db_manager, settings, guard)

    async with guard.hold():
        with pytest.raises(ConflictError):
            await handler({})

    result = await handler({})
    assert result["report"]["updated_count"] == 4
