"""
主数据登记表服务（推广员、渠道、商品）
"""
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from plugins.rf.commission.models import ChannelEntry, ProductEntry, PromoterEntry, RegistrySnapshot
from rf_core.models.channels import ChannelConfig
from rf_core.models.products import Product
from rf_core.models.promoters import Promoter
from rf_core.utils.logger import get_logger
from rf_core.utils.errors import ConflictError

logger = get_logger(__name__)


class RegistryService:
    """登记表服务"""

    @staticmethod
    async def load_registry(db: AsyncSession) -> RegistrySnapshot:
        """加载登记表快照（均按 ID 升序）"""
        promoters = (await db.execute(select(Promoter).order_by(Promoter.id))).scalars().all()
        channels = (await db.execute(select(ChannelConfig).order_by(ChannelConfig.id))).scalars().all()
        products = (await db.execute(select(Product).order_by(Product.id))).scalars().all()

        return RegistrySnapshot(
            promoters=[PromoterEntry.model_validate(p) for p in promoters],
            channels=[ChannelEntry.model_validate(c) for c in channels],
            products=[
                ProductEntry(id=p.id, name=p.name, match_keywords=p.keywords)
                for p in products
            ],
        )

    @staticmethod
    async def list_channels(db: AsyncSession) -> List[ChannelConfig]:
        stmt = select(ChannelConfig).order_by(ChannelConfig.id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_channel_by_name(db: AsyncSession, name: str) -> Optional[ChannelConfig]:
        stmt = select(ChannelConfig).where(ChannelConfig.name == name)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_channel(
        db: AsyncSession,
        name: str,
        is_enabled: bool = True,
        settlement_by_completed: bool = True,
    ) -> ChannelConfig:
        """创建渠道"""
        name = name.strip()
        existing = await RegistryService.get_channel_by_name(db, name)
        if existing:
            raise ConflictError(
                code="CHANNEL_NAME_EXISTS",
                detail=f"渠道名称 '{name}' 已存在"
            )

        channel = ChannelConfig(
            name=name,
            is_enabled=is_enabled,
            settlement_by_completed=settlement_by_completed,
        )
        db.add(channel)
        await db.flush()
        await db.refresh(channel)

        logger.info(f"创建渠道: id={channel.id}, name={name}")
        return channel

    @staticmethod
    async def ensure_channel(
        db: AsyncSession,
        name: str,
        settlement_by_completed: bool = True,
    ) -> Tuple[ChannelConfig, bool]:
        """确保渠道存在，返回 (渠道, 是否新建)"""
        existing = await RegistryService.get_channel_by_name(db, name)
        if existing:
            return existing, False

        channel = await RegistryService.create_channel(
            db, name, is_enabled=True, settlement_by_completed=settlement_by_completed
        )
        return channel, True

    @staticmethod
    async def list_products(db: AsyncSession) -> List[Product]:
        stmt = select(Product).order_by(Product.id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
