"""
统计行与统计周期模型
"""

import calendar
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .enums import PeriodType


class StatsRow(BaseModel):
    """
    按 (创建人, 来源, 推广员, 渠道, 联系人标签) 分组的统计行

    SQL 聚合返回的是弱类型行（数字可能是字符串、NULL），
    进入提成计算前统一在此校验转换。
    """

    creator_id: Optional[int] = None
    source: Optional[str] = None
    promoter_id: Optional[int] = None
    channel_id: Optional[int] = None
    contact_label: Optional[str] = None

    order_count: int = 0
    total_revenue: Decimal = Field(default=Decimal("0"))
    refunded_amount: Decimal = Field(default=Decimal("0"))
    high_ticket_base: Decimal = Field(default=Decimal("0"))

    @field_validator("order_count", mode="before")
    @classmethod
    def _coerce_count(cls, v):
        if v is None:
            return 0
        if isinstance(v, (Decimal, float, str)):
            return int(Decimal(str(v)))
        return v

    @field_validator("total_revenue", "refunded_amount", "high_ticket_base", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        if v is None:
            return Decimal("0")
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class StatsPeriod(BaseModel):
    """统计周期"""

    type: PeriodType = PeriodType.CUMULATIVE
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_valid(self) -> bool:
        """自定义区间必须同时给出起止日期"""
        if self.type == PeriodType.CUSTOM:
            return self.start is not None and self.end is not None
        return True

    def window(self, today: Optional[date] = None) -> Optional[Tuple[datetime, datetime]]:
        """
        计算时间窗口（UTC）

        Returns:
            (起始时间, 结束时间)；累计周期返回 None
        """
        if self.type == PeriodType.CUMULATIVE:
            return None

        if self.type == PeriodType.MONTHLY:
            anchor = self.start or today or datetime.now(timezone.utc).date()
            last_day = calendar.monthrange(anchor.year, anchor.month)[1]
            first = date(anchor.year, anchor.month, 1)
            last = date(anchor.year, anchor.month, last_day)
        else:
            if not self.is_valid:
                raise ValueError("custom period requires both start and end")
            first, last = self.start, self.end

        return (
            datetime.combine(first, time.min, tzinfo=timezone.utc),
            datetime.combine(last, time.max, tzinfo=timezone.utc),
        )
