"""
提成报表数据模型
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

# 汇总校验容差
BALANCE_TOLERANCE = Decimal("0.01")

DEFAULT_CHANNEL_KEY = "default"


class PromoterLine(BaseModel):
    """渠道内按推广员（联系人）汇总的明细行"""

    name: str
    count: int = 0
    revenue: Decimal = Decimal("0")
    high_ticket_base: Decimal = Decimal("0")

    is_promoter: bool = False
    # 员工提成
    account_rate: Decimal = Decimal("0")
    account_commission: Decimal = Decimal("0")
    high_ticket_commission: Decimal = Decimal("0")
    # 推广员自身提成（仅展示，不计入员工提成）
    payout_rate: Decimal = Decimal("0")
    payout_commission: Decimal = Decimal("0")


class ChannelBreakdown(BaseModel):
    """单个渠道的提成明细"""

    channel_id: Optional[int] = None  # None 即默认渠道
    channel_name: str
    order_count: int = 0
    revenue: Decimal = Decimal("0")
    high_ticket_base: Decimal = Decimal("0")

    employee_rate: Decimal = Decimal("0")
    volume_gradient: Decimal = Decimal("0")
    subordinate: Decimal = Decimal("0")
    high_ticket: Decimal = Decimal("0")
    employee_total: Decimal = Decimal("0")
    promoter_commission: Decimal = Decimal("0")

    promoters: List[PromoterLine] = Field(default_factory=list)

    @property
    def channel_key(self) -> str:
        return DEFAULT_CHANNEL_KEY if self.channel_id is None else str(self.channel_id)

    @property
    def is_default(self) -> bool:
        return self.channel_id is None


class SubordinateSplit(BaseModel):
    """下级（渠道）提成按同行 / 代理拆分"""

    peer: Decimal = Decimal("0")
    agent: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class CommissionReport(BaseModel):
    """员工提成报表"""

    user_id: int
    user_name: Optional[str] = None
    account_group_id: Optional[int] = None
    account_group_name: Optional[str] = None
    high_ticket_rate: Decimal = Decimal("0")

    total_order_count: int = 0
    total_revenue: Decimal = Decimal("0")
    refunded_amount: Decimal = Decimal("0")
    effective_base_rate: Decimal = Decimal("0")

    volume_gradient: Decimal = Decimal("0")
    subordinate: SubordinateSplit = Field(default_factory=SubordinateSplit)
    high_ticket: Decimal = Decimal("0")
    employee_total: Decimal = Decimal("0")
    promoter_total: Decimal = Decimal("0")

    channels: List[ChannelBreakdown] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)

    def check_balance(self, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
        """阶梯 + 下级 + 高单价 之和应等于各渠道员工提成之和"""
        parts = self.volume_gradient + self.subordinate.total + self.high_ticket
        channel_sum = sum((c.employee_total for c in self.channels), Decimal("0"))
        return abs(parts - channel_sum) <= tolerance and abs(parts - self.employee_total) <= tolerance
