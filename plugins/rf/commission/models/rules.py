"""
提成规则数据模型
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import RuleScope, RuleType


class CommissionTier(BaseModel):
    """阶梯提成规则：单量落在 [min_count, max_count] 时适用 percentage"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    type: RuleType = RuleType.QUANTITY
    scope: RuleScope = RuleScope.USER
    channel_id: Optional[int] = None  # 为空表示全局默认
    min_count: int = Field(default=0, ge=0)
    max_count: Optional[int] = Field(default=None, ge=0)  # 为空表示无上限
    percentage: Decimal = Field(..., ge=0, le=100)

    def covers(self, count: int) -> bool:
        """单量是否落在本档区间内"""
        if count < self.min_count:
            return False
        return self.max_count is None or count <= self.max_count


class AccountGroupRules(BaseModel):
    """账号组：一组提成规则 + 高单价提成比例"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str = ""
    high_ticket_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    settlement_by_completed: bool = True
    rules: List[CommissionTier] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)  # 加载规则时发现的问题
