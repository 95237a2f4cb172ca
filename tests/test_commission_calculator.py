"""
提成计算测试
"""
import random
from decimal import Decimal

import pytest

from plugins.rf.commission.models import AccountGroupRules, CommissionTier, StatsRow
from plugins.rf.commission.services import CommissionCalculator


@pytest.fixture
def calculator(registry):
    return CommissionCalculator(registry)


@pytest.fixture
def rows():
    """员工 1 的统计行：同行推广员、自主开发、兼职代理推广员、零售、仅退款"""
    return [
        StatsRow(creator_id=1, source="PEER", promoter_id=1, contact_label="张三",
                 order_count=3, total_revenue=Decimal("300"), high_ticket_base=Decimal("50")),
        StatsRow(creator_id=1, contact_label="self",
                 order_count=5, total_revenue=Decimal("1000"), high_ticket_base=Decimal("200")),
        StatsRow(creator_id=1, source="PART_TIME_AGENT", contact_label="李四",
                 order_count=4, total_revenue=Decimal("400")),
        StatsRow(creator_id=1, source="RETAIL", contact_label="路人",
                 order_count=2, total_revenue=Decimal("200"), high_ticket_base=Decimal("30")),
        StatsRow(creator_id=1, contact_label="退款客户", order_count=0, refunded_amount=Decimal("100")),
    ]


def _channel(report, name):
    return next(c for c in report.channels if c.channel_name == name)


def test_assign_channel(calculator, rows):
    zhang, own, li, retail, _ = rows
    assert calculator.assign_channel(zhang) == 1
    assert calculator.assign_channel(own) is None
    # 联系人名称命中推广员，按其渠道名称归属
    assert calculator.assign_channel(li) == 2
    assert calculator.assign_channel(retail) == 3
    assert calculator.assign_channel(StatsRow(channel_id=7, contact_label="张三")) == 7


def test_full_report(calculator, rows, account_group):
    report = calculator.calculate(1, rows, group=account_group, user_name="Alice")

    assert report.total_order_count == 14
    assert report.total_revenue == Decimal("1900")
    assert report.refunded_amount == Decimal("100")
    # 14 单落在 11+ 档
    assert report.effective_base_rate == Decimal("8")
    assert report.diagnostics == []

    peer = _channel(report, "同行")
    assert peer.employee_rate == Decimal("10")
    assert peer.subordinate == Decimal("30")
    assert peer.volume_gradient == Decimal("0")
    assert peer.high_ticket == Decimal("0")
    assert peer.promoter_commission == Decimal("9")
    assert peer.promoters[0].is_promoter

    own = _channel(report, "自主开发")
    assert own.channel_id is None
    assert own.volume_gradient == Decimal("80")
    assert own.high_ticket == Decimal("20")
    assert own.employee_total == Decimal("100")

    # 兼职代理没有渠道员工规则，沿用基础比例
    agent = _channel(report, "兼职代理")
    assert agent.employee_rate == Decimal("8")
    assert agent.subordinate == Decimal("32")

    retail = _channel(report, "零售")
    assert retail.volume_gradient == Decimal("16")
    # 高单价只计默认渠道
    assert retail.high_ticket == Decimal("0")

    assert report.volume_gradient == Decimal("96")
    assert report.subordinate.peer == Decimal("30")
    assert report.subordinate.agent == Decimal("32")
    assert report.subordinate.total == Decimal("62")
    assert report.high_ticket == Decimal("20")
    assert report.employee_total == Decimal("178")
    assert report.promoter_total == Decimal("9")
    assert report.check_balance()


def test_zero_count_rows_do_not_create_channels(calculator, rows, account_group):
    report = calculator.calculate(1, rows, group=account_group)
    names = [line.name for channel in report.channels for line in channel.promoters]
    assert "退款客户" not in names


def test_lines_merged_by_display_name(calculator, account_group):
    rows = [
        StatsRow(promoter_id=1, contact_label="张三", order_count=1, total_revenue=Decimal("100")),
        StatsRow(channel_id=1, contact_label="张三", order_count=2, total_revenue=Decimal("200")),
    ]

    report = calculator.calculate(1, rows, group=account_group)

    assert len(report.channels) == 1
    lines = report.channels[0].promoters
    assert len(lines) == 1
    assert lines[0].count == 3
    assert lines[0].revenue == Decimal("300")


def test_unmarked_rows_go_to_default_bucket(calculator, account_group):
    rows = [StatsRow(order_count=2, total_revenue=Decimal("100"))]

    report = calculator.calculate(1, rows, group=account_group)

    assert report.channels[0].channel_name == "未标记"
    assert report.channels[0].promoters[0].name == "未标记"
    assert report.volume_gradient == Decimal("5")


def test_channel_rules_without_matching_tier_give_zero(calculator):
    group = AccountGroupRules(
        name="窄区间",
        rules=[
            CommissionTier(min_count=0, percentage=Decimal("5")),
            CommissionTier(channel_id=1, min_count=100, percentage=Decimal("12")),
        ],
    )
    rows = [StatsRow(promoter_id=1, contact_label="张三", order_count=3, total_revenue=Decimal("300"))]

    report = calculator.calculate(1, rows, group=group)

    assert report.channels[0].employee_rate == Decimal("0")
    assert report.subordinate.total == Decimal("0")


def test_no_account_group(calculator, rows):
    report = calculator.calculate(1, rows)

    assert report.diagnostics == ["NO_ACCOUNT_GROUP"]
    assert report.effective_base_rate == Decimal("0")
    assert report.employee_total == Decimal("0")
    assert report.total_order_count == 14
    assert report.check_balance()


def test_group_without_default_rules(calculator, rows):
    group = AccountGroupRules(name="仅渠道", rules=[CommissionTier(channel_id=1, percentage=Decimal("10"))])

    report = calculator.calculate(1, rows, group=group)

    assert report.diagnostics == ["NO_DEFAULT_USER_RULES"]
    assert _channel(report, "同行").subordinate == Decimal("30")
    assert report.volume_gradient == Decimal("0")


def test_empty_rows(calculator, account_group):
    report = calculator.calculate(1, [], group=account_group)
    assert report.channels == []
    assert report.employee_total == Decimal("0")
    assert report.check_balance()


def _synthetic_rows(seed):
    """随机生成统计行：混合渠道、推广员、联系人与零单量行"""
    rnd = random.Random(seed)
    rows = []
    for _ in range(rnd.randint(1, 25)):
        rows.append(StatsRow(
            creator_id=1,
            source=rnd.choice([None, "PEER", "PART_TIME_AGENT", "RETAIL", "WECHAT"]),
            promoter_id=rnd.choice([None, None, 1, 2, 3, 99]),
            channel_id=rnd.choice([None, None, None, 1, 2, 3, 7]),
            contact_label=rnd.choice([None, "self", "张三", "李四", "王五", "路人"]),
            order_count=rnd.choice([0, 0, 1, 2, 5, 12]),
            total_revenue=Decimal(rnd.randint(0, 500000)) / 100,
            refunded_amount=Decimal(rnd.randint(0, 2000)) / 100,
            high_ticket_base=Decimal(rnd.randint(0, 30000)) / 100,
        ))
    return rows


@pytest.mark.parametrize("seed", range(20))
@pytest.mark.parametrize("with_group", [True, False])
def test_balance_holds_for_generated_rows(calculator, account_group, seed, with_group):
    rows = _synthetic_rows(seed)

    report = calculator.calculate(1, rows, group=account_group if with_group else None)

    assert report.check_balance()
    assert report.total_order_count == sum(r.order_count for r in rows if r.order_count > 0)
    # 零单量行只计入退款，不产生渠道
    assert sum(c.order_count for c in report.channels) == report.total_order_count
    if not with_group:
        assert report.employee_total == Decimal("0")
