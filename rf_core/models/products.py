"""
商品模型
"""
from datetime import datetime
from typing import List

from sqlalchemy import String, DateTime, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from rf_core.models.base import Base, BigIntId


class Product(Base):
    """租赁商品（机型）"""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="商品ID"
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        index=True,
        comment="商品名称"
    )
    # 线上订单识别关键词
    match_keywords: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="匹配关键词"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name})>"

    @property
    def keywords(self) -> List[str]:
        return [k for k in (self.match_keywords or []) if isinstance(k, str)]
