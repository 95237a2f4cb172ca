"""
Pytest 配置和 fixtures
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import (
    AccountGroupRules,
    ChannelEntry,
    CommissionTier,
    ProductEntry,
    PromoterEntry,
    RegistrySnapshot,
    RuleScope,
)
from rf_core.config import Settings
from rf_core.database import DatabaseManager
from rf_core.models import (
    AccountGroup,
    ChannelConfig,
    CommissionRule,
    Order,
    OrderExtension,
    Product,
    Promoter,
    User,
)


@pytest.fixture
def settings() -> Settings:
    """测试配置（不读取 .env）"""
    return Settings(_env_file=None, db_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def registry() -> RegistrySnapshot:
    """示例登记表：三个渠道、三个推广员、三个商品"""
    return RegistrySnapshot(
        channels=[
            ChannelEntry(id=1, name="同行"),
            ChannelEntry(id=2, name="兼职代理"),
            ChannelEntry(id=3, name="零售"),
        ],
        promoters=[
            PromoterEntry(id=1, name="张三", channel="同行", channel_config_id=1),
            PromoterEntry(id=2, name="李四", channel="兼职代理"),
            PromoterEntry(id=3, name="王五"),
        ],
        products=[
            ProductEntry(id=1, name="vivoX300Pro单机", match_keywords=["x300pro"]),
            ProductEntry(id=2, name="iPhone 16", match_keywords=["iphone16"]),
            ProductEntry(id=3, name="iPhone 16 Pro Max", match_keywords=["iphone16promax"]),
        ],
    )


@pytest.fixture
def account_group() -> AccountGroupRules:
    """示例账号组：默认阶梯 5%/8%，同行渠道员工 10%、推广员 3%，高单价 10%"""
    return AccountGroupRules(
        id=1,
        name="标准组",
        high_ticket_rate=Decimal("10"),
        rules=[
            CommissionTier(min_count=0, max_count=10, percentage=Decimal("5")),
            CommissionTier(min_count=11, max_count=None, percentage=Decimal("8")),
            CommissionTier(channel_id=1, min_count=0, percentage=Decimal("10")),
            CommissionTier(scope=RuleScope.PROMOTER, channel_id=1, min_count=0, percentage=Decimal("3")),
        ],
    )


@pytest_asyncio.fixture
async def db_manager(settings) -> AsyncGenerator[DatabaseManager, None]:
    """内存 SQLite 数据库管理器"""
    manager = DatabaseManager(settings=settings)
    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager) -> AsyncGenerator[AsyncSession, None]:
    """数据库会话 fixture"""
    async with db_manager.get_session() as session:
        yield session


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def seed_sample_data(session: AsyncSession) -> Dict[str, int]:
    """
    写入示例数据

    员工 alice（标准组）录入 6 单：
    - A001 张三（已关联推广员与渠道）租金 300
    - A002 self 租金 500 标准价 400，续租 100
    - A003 self 租金 500 已关闭
    - A004 李四（未关联）兼职代理
    - A005 路人 RETAIL 商品名需别名映射
    - A006 无名氏 来源未知
    """
    peer = ChannelConfig(name="同行")
    agent = ChannelConfig(name="兼职代理")
    session.add_all([peer, agent])
    await session.flush()

    group = AccountGroup(
        name="标准组",
        high_ticket_rate=Decimal("10"),
        rules=[
            CommissionRule(target="USER", min_count=0, max_count=10, percentage=Decimal("5")),
            CommissionRule(target="USER", min_count=11, max_count=None, percentage=Decimal("8")),
            CommissionRule(target="USER", channel_config_id=peer.id, min_count=0, percentage=Decimal("10")),
            CommissionRule(target="PROMOTER", channel_config_id=peer.id, min_count=0, percentage=Decimal("3")),
        ],
    )
    session.add(group)
    await session.flush()

    alice = User(username="alice", name="Alice", account_group_id=group.id)
    bob = User(username="bob", name="Bob")
    session.add_all([alice, bob])
    await session.flush()

    zhang = Promoter(name="张三", channel="同行", channel_config_id=peer.id)
    li = Promoter(name="李四", channel="兼职代理")
    session.add_all([zhang, li])

    vivo = Product(name="vivoX300Pro单机", match_keywords=["x300pro"])
    iphone = Product(name="iPhone 16", match_keywords=["iphone16"])
    session.add_all([vivo, iphone])
    await session.flush()

    created = _utc(2026, 9, 10, 12, 0, 0)
    completed = _utc(2026, 9, 20, 12, 0, 0)
    orders = [
        Order(
            order_no="A001", creator_id=alice.id, status="COMPLETED", source="PEER",
            source_contact="张三", product_name="iPhone 16", promoter_id=zhang.id,
            channel_id=peer.id, product_id=iphone.id, rent_price=Decimal("300"),
            created_at=created, completed_at=completed,
        ),
        Order(
            order_no="A002", creator_id=alice.id, status="RENTING", source=None,
            source_contact="self", product_name="iPhone 16", rent_price=Decimal("500"),
            standard_price=Decimal("400"), created_at=created,
            extensions=[OrderExtension(days=7, price=Decimal("100"))],
        ),
        Order(
            order_no="A003", creator_id=alice.id, status="CLOSED", source=None,
            source_contact="self", product_name="iPhone 16", rent_price=Decimal("500"),
            created_at=created,
        ),
        Order(
            order_no="A004", creator_id=alice.id, status="COMPLETED", source="PART_TIME_AGENT",
            source_contact="李四", product_name="vivoX300Pro单机", rent_price=Decimal("400"),
            created_at=created, completed_at=_utc(2026, 8, 5, 9, 0, 0),
        ),
        Order(
            order_no="A005", creator_id=alice.id, status="RENTING", source="RETAIL",
            source_contact="路人", product_name="vivoX300U单机", rent_price=Decimal("200"),
            created_at=created,
        ),
        Order(
            order_no="A006", creator_id=bob.id, status="RENTING", source="WECHAT",
            source_contact="无名氏", product_name="未知机型", rent_price=Decimal("100"),
            created_at=created,
        ),
    ]
    session.add_all(orders)
    await session.commit()

    return {
        "alice": alice.id,
        "bob": bob.id,
        "group": group.id,
        "peer": peer.id,
        "agent": agent.id,
        "zhang": zhang.id,
        "li": li.id,
        "vivo": vivo.id,
        "iphone": iphone.id,
        **{o.order_no: o.id for o in orders},
    }


@pytest_asyncio.fixture
async def seeded(db_session) -> Dict[str, int]:
    return await seed_sample_data(db_session)
