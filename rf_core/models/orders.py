"""
租赁订单模型
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import String, Integer, DateTime, Numeric, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rf_core.models.base import Base, BigIntId


class Order(Base):
    """租赁订单

    source_contact / source / product_name 为录单时的自由文本，
    promoter_id / channel_id / product_id 由身份解析回填。
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_creator_status", "creator_id", "status"),
        Index("ix_orders_completed_at", "completed_at"),
    )

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="订单ID"
    )
    order_no: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="订单号"
    )
    creator_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="录单员工ID"
    )
    status: Mapped[str] = mapped_column(
        String(32),
        default="PENDING_REVIEW",
        nullable=False,
        comment="订单状态"
    )

    # 自由文本
    source: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="来源代码 PEER/PART_TIME_AGENT/RETAIL"
    )
    source_contact: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="来源联系人（推广员名称）"
    )
    product_name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="商品名称"
    )

    # 规范外键
    promoter_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("promoters.id", ondelete="SET NULL"),
        nullable=True,
        comment="推广员ID"
    )
    channel_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("channel_configs.id", ondelete="SET NULL"),
        nullable=True,
        comment="渠道ID"
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        comment="商品ID"
    )

    # 金额
    rent_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
        comment="租金"
    )
    insurance_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
        comment="保险费"
    )
    overdue_fee: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="逾期费"
    )
    deposit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
        comment="押金"
    )
    standard_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="标准价（高单价基数参考）"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="完成时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="更新时间"
    )

    # 关系
    extensions: Mapped[List["OrderExtension"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, order_no={self.order_no}, status={self.status})>"


class OrderExtension(Base):
    """续租记录"""
    __tablename__ = "order_extensions"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="续租ID"
    )
    order_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    days: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="续租天数"
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
        comment="续租费用"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )

    order: Mapped["Order"] = relationship(back_populates="extensions")
