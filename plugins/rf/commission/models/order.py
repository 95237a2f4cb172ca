"""
订单事实数据模型

订单一经创建即视为不可变的销售事实，状态随生命周期流转，
推广员/商品/渠道外键由身份解析回填，回填后不再覆盖。
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import OrderStatus


class ExtensionCharge(BaseModel):
    """续租费用"""

    model_config = ConfigDict(from_attributes=True)

    days: int = 0
    price: Decimal = Field(default=Decimal("0"))

    @field_validator("price", mode="before")
    @classmethod
    def _none_price(cls, v):
        return Decimal("0") if v is None else v


class OrderFacts(BaseModel):
    """订单事实（可直接由 ORM 对象校验生成）"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    order_no: str = ""
    creator_id: Optional[int] = None
    status: str = OrderStatus.PENDING_REVIEW.value

    # 自由文本字段（外键缺失时的兜底标签）
    source: Optional[str] = None
    source_contact: Optional[str] = None
    product_name: Optional[str] = None

    # 规范外键
    promoter_id: Optional[int] = None
    channel_id: Optional[int] = None
    product_id: Optional[int] = None

    # 金额
    rent_price: Decimal = Field(default=Decimal("0"))
    insurance_price: Decimal = Field(default=Decimal("0"))
    overdue_fee: Optional[Decimal] = None
    deposit: Decimal = Field(default=Decimal("0"))
    standard_price: Optional[Decimal] = None
    extensions: List[ExtensionCharge] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("rent_price", "insurance_price", "deposit", mode="before")
    @classmethod
    def _none_amount(cls, v):
        return Decimal("0") if v is None else v

    @property
    def is_closed(self) -> bool:
        """是否已关闭（退款）"""
        return self.status == OrderStatus.CLOSED.value

    @property
    def missing_links(self) -> bool:
        return self.promoter_id is None or self.product_id is None or self.channel_id is None
