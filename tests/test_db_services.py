"""
数据库服务测试（内存 SQLite）
"""
import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from plugins.rf.commission.models import (
    BackfillScope,
    CommissionTier,
    IdentityDimension,
    PeriodType,
    RuleScope,
    StatsPeriod,
)
from plugins.rf.commission.services import StatsAggregator
from rf_core.models import AccountGroup, ChannelConfig, CommissionRule, Order, Promoter
from rf_core.services import (
    AccountGroupService,
    BackfillGuard,
    CommissionReportService,
    IdentityService,
    OrderStatsService,
    RegistryService,
    SqlOrderLinkRepository,
)
from rf_core.utils.errors import ConflictError, NotFoundError, ValidationError


async def _links(db, order_id):
    row = (
        await db.execute(
            select(Order.promoter_id, Order.product_id, Order.channel_id).where(Order.id == order_id)
        )
    ).one()
    return tuple(row)


# ========== 统计 ==========

async def test_query_stats_matches_in_memory_aggregation(db_session, seeded):
    sql_rows = await OrderStatsService.query_stats(db_session, creator_id=seeded["alice"])
    facts = await OrderStatsService.load_order_facts(db_session, creator_id=seeded["alice"])
    memory_rows = StatsAggregator().aggregate(facts)

    def _key(row):
        return (row.source or "", row.promoter_id or 0, row.channel_id or 0, row.contact_label or "")

    sql_rows = sorted(sql_rows, key=_key)
    memory_rows = sorted(memory_rows, key=_key)
    assert len(sql_rows) == len(memory_rows) == 4
    for sql_row, memory_row in zip(sql_rows, memory_rows):
        assert _key(sql_row) == _key(memory_row)
        assert sql_row.order_count == memory_row.order_count
        assert sql_row.total_revenue == memory_row.total_revenue
        assert sql_row.refunded_amount == memory_row.refunded_amount

    own = next(r for r in sql_rows if r.contact_label == "self")
    assert own.order_count == 1
    assert own.total_revenue == Decimal("600")
    assert own.refunded_amount == Decimal("500")
    assert own.high_ticket_base == Decimal("100")


async def test_query_stats_monthly_by_completion(db_session, seeded):
    period = StatsPeriod(type=PeriodType.MONTHLY, start=date(2026, 9, 1))

    rows = await OrderStatsService.query_stats(db_session, period=period, creator_id=seeded["alice"])

    assert len(rows) == 1
    assert rows[0].contact_label == "张三"
    assert rows[0].total_revenue == Decimal("300")


async def test_query_stats_monthly_by_creation(db_session, seeded):
    period = StatsPeriod(type=PeriodType.MONTHLY, start=date(2026, 9, 1))

    rows = await OrderStatsService.query_stats(
        db_session, period=period, creator_id=seeded["alice"], settlement_by_completed=False
    )

    assert sum(r.order_count for r in rows) == 4


async def test_query_stats_invalid_custom_period(db_session, seeded):
    period = StatsPeriod(type=PeriodType.CUSTOM, end=date(2026, 9, 30))
    assert await OrderStatsService.query_stats(db_session, period=period) == []


# ========== 提成报表 ==========

async def test_commission_report(db_session, seeded):
    result = await CommissionReportService.compute_commission_report(db_session, seeded["alice"])

    assert result.success
    report = result.data
    assert report.user_name == "Alice"
    assert report.account_group_name == "标准组"
    assert report.total_order_count == 4
    assert report.total_revenue == Decimal("1500")
    assert report.refunded_amount == Decimal("500")
    assert report.effective_base_rate == Decimal("5")

    peer = next(c for c in report.channels if c.channel_id == seeded["peer"])
    assert peer.subordinate == Decimal("30")
    assert peer.promoter_commission == Decimal("9")

    default = next(c for c in report.channels if c.channel_id is None)
    assert default.volume_gradient == Decimal("40")
    assert default.high_ticket == Decimal("10")

    assert report.subordinate.peer == Decimal("30")
    assert report.subordinate.agent == Decimal("20")
    assert report.employee_total == Decimal("100")
    assert report.check_balance()


async def test_commission_report_unknown_user(db_session, seeded):
    result = await CommissionReportService.compute_commission_report(db_session, 9999)
    assert not result.success
    assert result.error_code == "USER_NOT_FOUND"


async def test_compute_all_reports(db_session, seeded):
    reports = await CommissionReportService.compute_all_reports(db_session)

    by_user = {r.user_id: r for r in reports}
    assert set(by_user) == {seeded["alice"], seeded["bob"]}
    assert by_user[seeded["bob"]].diagnostics == ["NO_ACCOUNT_GROUP"]
    assert by_user[seeded["bob"]].employee_total == Decimal("0")


async def test_unknown_rule_type_is_skipped(db_session, seeded):
    group = await db_session.get(AccountGroup, seeded["group"])
    group.rules.append(CommissionRule(type="AMOUNT", target="USER", min_count=0, percentage=Decimal("50")))
    await db_session.commit()

    report = (await CommissionReportService.compute_commission_report(db_session, seeded["alice"])).data

    assert "INVALID_COMMISSION_RULE" in report.diagnostics
    assert report.effective_base_rate == Decimal("5")
    assert report.employee_total == Decimal("100")


async def test_compute_all_reports_with_only_invalid_rules(db_session, seeded):
    group = await AccountGroupService.create(db_session, name="旧版组")
    group.rules.append(CommissionRule(type="AMOUNT", target="USER", min_count=0, percentage=Decimal("5")))
    await db_session.flush()
    await AccountGroupService.assign_user(db_session, seeded["bob"], group.id)
    await db_session.commit()

    reports = await CommissionReportService.compute_all_reports(db_session)

    by_user = {r.user_id: r for r in reports}
    assert set(by_user) == {seeded["alice"], seeded["bob"]}
    assert by_user[seeded["bob"]].diagnostics == ["INVALID_COMMISSION_RULE", "NO_DEFAULT_USER_RULES"]
    assert by_user[seeded["alice"]].employee_total == Decimal("100")


async def test_compute_all_reports_skips_failing_user(db_session, seeded, monkeypatch):
    original = CommissionReportService._report_for_user

    async def fail_for_bob(db, user, period, calculator):
        if user.id == seeded["bob"]:
            raise RuntimeError("stats query failed")
        return await original(db, user, period, calculator)

    monkeypatch.setattr(CommissionReportService, "_report_for_user", staticmethod(fail_for_bob))

    reports = await CommissionReportService.compute_all_reports(db_session)

    assert [r.user_id for r in reports] == [seeded["alice"]]
    assert reports[0].employee_total == Decimal("100")


# ========== 账号组 ==========

async def test_create_account_group_rejects_overlap(db_session):
    rules = [
        CommissionTier(min_count=0, max_count=10, percentage=Decimal("5")),
        CommissionTier(min_count=5, max_count=None, percentage=Decimal("8")),
    ]
    with pytest.raises(ValidationError) as exc_info:
        await AccountGroupService.create(db_session, name="重叠组", rules=rules)
    assert exc_info.value.code == "COMMISSION_RULE_OVERLAP"


async def test_account_group_lifecycle(db_session, seeded):
    group = await AccountGroupService.create(
        db_session,
        name="兼职组",
        high_ticket_rate=Decimal("5"),
        rules=[
            CommissionTier(min_count=0, percentage=Decimal("4")),
            CommissionTier(scope=RuleScope.PROMOTER, channel_id=seeded["peer"], percentage=Decimal("2")),
        ],
    )
    assert len(group.rules) == 2

    with pytest.raises(ConflictError):
        await AccountGroupService.create(db_session, name="兼职组")

    group = await AccountGroupService.update(
        db_session,
        group.id,
        rules=[CommissionTier(min_count=0, max_count=20, percentage=Decimal("6"))],
    )
    assert [(r.min_count, r.max_count, r.percentage) for r in group.rules] == [(0, 20, Decimal("6"))]

    user = await AccountGroupService.assign_user(db_session, seeded["bob"], group.id)
    assert user.account_group_id == group.id

    with pytest.raises(ValidationError) as exc_info:
        await AccountGroupService.delete(db_session, group.id)
    assert exc_info.value.code == "ACCOUNT_GROUP_IN_USE"

    await AccountGroupService.assign_user(db_session, seeded["bob"], None)
    assert await AccountGroupService.delete(db_session, group.id)
    assert await AccountGroupService.get_by_id(db_session, group.id) is None


async def test_update_unknown_account_group(db_session):
    with pytest.raises(NotFoundError):
        await AccountGroupService.update(db_session, 404, name="不存在")


# ========== 渠道 ==========

async def test_ensure_channel(db_session, seeded):
    channel, created = await RegistryService.ensure_channel(db_session, "零售")
    assert created
    again, created_again = await RegistryService.ensure_channel(db_session, "零售")
    assert not created_again
    assert again.id == channel.id

    with pytest.raises(ConflictError):
        await RegistryService.create_channel(db_session, " 零售 ")


# ========== 身份解析 / 回填 ==========

async def test_resolve_order_preview_and_persist(db_session, seeded):
    preview = await IdentityService.resolve_order(db_session, seeded["A004"])
    assert preview.success
    assert preview.metadata["persisted"] is False
    assert (preview.data.promoter_id, preview.data.product_id, preview.data.channel_id) == (
        seeded["li"], seeded["vivo"], seeded["agent"]
    )
    assert await _links(db_session, seeded["A004"]) == (None, None, None)

    persisted = await IdentityService.resolve_order(db_session, seeded["A004"], persist=True)
    assert persisted.metadata["persisted"] is True
    assert await _links(db_session, seeded["A004"]) == (seeded["li"], seeded["vivo"], seeded["agent"])


async def test_resolve_unknown_order(db_session, seeded):
    result = await IdentityService.resolve_order(db_session, 9999)
    assert result.error_code == "ORDER_NOT_FOUND"


async def test_run_backfill(db_session, seeded):
    report = await IdentityService.run_backfill(db_session, BackfillScope())

    assert report.scanned_count == 5
    assert report.updated_count == 4
    assert report.failed_count == 0
    assert report.promoters_linked == 1
    assert report.unmatched_total == 4
    assert {(e.order_no, e.dimension) for e in report.unmatched_log} == {
        ("A005", IdentityDimension.PROMOTER),
        ("A006", IdentityDimension.PROMOTER),
        ("A006", IdentityDimension.PRODUCT),
        ("A006", IdentityDimension.CHANNEL),
    }

    retail = (await db_session.execute(select(ChannelConfig).where(ChannelConfig.name == "零售"))).scalar_one()
    assert await _links(db_session, seeded["A004"]) == (seeded["li"], seeded["vivo"], seeded["agent"])
    assert await _links(db_session, seeded["A005"]) == (None, seeded["vivo"], retail.id)
    assert await _links(db_session, seeded["A002"]) == (None, seeded["iphone"], None)

    li_channel = (
        await db_session.execute(select(Promoter.channel_config_id).where(Promoter.id == seeded["li"]))
    ).scalar_one()
    assert li_channel == seeded["agent"]

    # 再次执行不产生任何写入
    second = await IdentityService.run_backfill(db_session, BackfillScope())
    assert second.updated_count == 0
    assert second.promoters_linked == 0


async def test_backfill_keeps_report_totals(db_session, seeded):
    before = (await CommissionReportService.compute_commission_report(db_session, seeded["alice"])).data
    await IdentityService.run_backfill(db_session, BackfillScope())
    after = (await CommissionReportService.compute_commission_report(db_session, seeded["alice"])).data

    assert after.total_order_count == before.total_order_count
    assert after.employee_total == before.employee_total
    assert any(c.channel_name == "零售" for c in after.channels)
    default = next(c for c in after.channels if c.channel_id is None)
    assert default.channel_name == "自主开发"


async def test_dry_run_backfill_writes_nothing(db_session, seeded):
    report = await IdentityService.run_backfill(db_session, BackfillScope(dry_run=True))

    assert report.dry_run
    assert report.updated_count > 0
    assert await _links(db_session, seeded["A004"]) == (None, None, None)
    assert await RegistryService.get_channel_by_name(db_session, "零售") is None


async def test_backfill_rejects_concurrent_run(db_session):
    guard = BackfillGuard()

    async with guard.hold():
        assert guard.running
        with pytest.raises(ConflictError) as exc_info:
            await IdentityService.run_backfill(db_session, guard=guard)
        assert exc_info.value.code == "BACKFILL_RUNNING"

    assert not guard.running


async def test_interrupted_backfill_keeps_written_orders(db_manager, db_session, seeded, monkeypatch):
    original = SqlOrderLinkRepository.set_order_links_if_null
    written = []

    async def interrupt_on_third_write(self, order_id, *links):
        if len(written) == 2:
            raise asyncio.CancelledError()
        written.append(order_id)
        return await original(self, order_id, *links)

    monkeypatch.setattr(SqlOrderLinkRepository, "set_order_links_if_null", interrupt_on_third_write)

    guard = BackfillGuard()
    with pytest.raises(asyncio.CancelledError):
        await IdentityService.run_backfill(db_session, BackfillScope(), guard=guard)
    await db_session.rollback()
    assert not guard.running

    assert written == [seeded["A002"], seeded["A003"]]
    async with db_manager.get_session() as fresh:
        assert await _links(fresh, seeded["A002"]) == (None, seeded["iphone"], None)
        assert await _links(fresh, seeded["A003"]) == (None, seeded["iphone"], None)
        assert await _links(fresh, seeded["A004"]) == (None, None, None)
        assert await RegistryService.get_channel_by_name(fresh, "零售") is not None

    # 重新执行从中断处继续
    monkeypatch.undo()
    report = await IdentityService.run_backfill(db_session, BackfillScope())
    assert report.updated_count == 2
    assert await _links(db_session, seeded["A004"]) == (seeded["li"], seeded["vivo"], seeded["agent"])


async def test_classify_product(db_session, seeded):
    product = await IdentityService.classify_product(db_session, "iPhone 16 256G 国行", None)
    assert product.id == seeded["iphone"]

    product = await IdentityService.classify_product(db_session, "手机租赁", "X300PRO-黑")
    assert product.id == seeded["vivo"]

    assert await IdentityService.classify_product(db_session, "相机", None) is None
