"""
账号组与提成规则模型
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import String, Integer, Boolean, DateTime, Numeric, ForeignKey, Text, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rf_core.models.base import Base, BigIntId


class AccountGroup(Base):
    """账号组

    一组阶梯提成规则 + 高单价提成比例，员工通过账号组继承提成政策。
    """
    __tablename__ = "account_groups"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="账号组ID"
    )
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="账号组名称"
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="说明"
    )
    high_ticket_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("0"),
        nullable=False,
        comment="高单价提成比例（%）"
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
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="更新时间"
    )

    # 关系
    rules: Mapped[List["CommissionRule"]] = relationship(
        back_populates="account_group",
        cascade="all, delete-orphan",
        order_by="CommissionRule.min_count",
        lazy="selectin",
    )
    users = relationship("User", back_populates="account_group", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<AccountGroup(id={self.id}, name={self.name}, rules={len(self.rules)})>"


class CommissionRule(Base):
    """阶梯提成规则

    target: USER（员工提成） / PROMOTER（推广员提成）
    channel_config_id 为空表示全局默认规则
    max_count 为空表示无上限
    """
    __tablename__ = "commission_rules"
    __table_args__ = (
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_commission_rules_percentage"),
    )

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="规则ID"
    )
    account_group_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("account_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="账号组ID"
    )
    type: Mapped[str] = mapped_column(
        String(20),
        default="QUANTITY",
        nullable=False,
        comment="规则类型"
    )
    target: Mapped[str] = mapped_column(
        String(20),
        default="USER",
        nullable=False,
        comment="作用对象 USER/PROMOTER"
    )
    channel_config_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("channel_configs.id", ondelete="CASCADE"),
        nullable=True,
        comment="渠道ID（空为全局）"
    )
    min_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="最小单量"
    )
    max_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="最大单量（空为无上限）"
    )
    percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        comment="提成比例（%）"
    )

    # 关系
    account_group: Mapped["AccountGroup"] = relationship(back_populates="rules")

    def __repr__(self) -> str:
        return (
            f"<CommissionRule(id={self.id}, target={self.target}, channel={self.channel_config_id}, "
            f"range=[{self.min_count}, {self.max_count}], percentage={self.percentage})>"
        )
