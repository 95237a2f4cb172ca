"""
渠道配置模型
"""
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from rf_core.models.base import Base, BigIntId


class ChannelConfig(Base):
    """渠道配置（同行、兼职代理、零售等）"""
    __tablename__ = "channel_configs"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="渠道ID"
    )
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="渠道名称"
    )
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="是否启用"
    )
    settlement_by_completed: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="是否按完成时间结算"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self) -> str:
        return f"<ChannelConfig(id={self.id}, name={self.name})>"
