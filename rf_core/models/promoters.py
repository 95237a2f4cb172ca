"""
推广员模型
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from rf_core.models.base import Base, BigIntId


class Promoter(Base):
    """推广员

    channel 为历史遗留的渠道名称字段，回填时据此补全 channel_config_id。
    """
    __tablename__ = "promoters"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="推广员ID"
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="推广员名称"
    )
    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="联系电话"
    )
    channel: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="渠道名称"
    )
    channel_config_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("channel_configs.id", ondelete="SET NULL"),
        nullable=True,
        comment="渠道ID"
    )
    creator_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="所属员工ID"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self) -> str:
        return f"<Promoter(id={self.id}, name={self.name}, channel={self.channel})>"
