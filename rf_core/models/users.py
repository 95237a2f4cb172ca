"""
员工账号模型
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rf_core.models.base import Base, BigIntId


class User(Base):
    """员工账号

    每个员工至多属于一个账号组，账号组决定其提成规则。
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        comment="用户ID"
    )
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        comment="登录名"
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="显示名称"
    )
    account_group_id: Mapped[Optional[int]] = mapped_column(
        BigIntId,
        ForeignKey("account_groups.id", ondelete="SET NULL"),
        nullable=True,
        comment="账号组ID"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="是否启用"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="创建时间"
    )

    # 关系
    account_group = relationship("AccountGroup", back_populates="users", lazy="selectin")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, account_group_id={self.account_group_id})>"

    @property
    def display_name(self) -> str:
        return self.name or self.username
