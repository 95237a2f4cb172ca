"""
身份解析与回填结果模型
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .enums import IdentityDimension


class IdentityMiss(BaseModel):
    """未能匹配的维度"""

    dimension: IdentityDimension
    label: str


class ResolvedIdentities(BaseModel):
    """订单关联解析结果"""

    promoter_id: Optional[int] = None
    product_id: Optional[int] = None
    channel_id: Optional[int] = None

    # 本次新解析出的维度（已有外键不计入）
    resolved: List[IdentityDimension] = Field(default_factory=list)
    misses: List[IdentityMiss] = Field(default_factory=list)

    @property
    def has_new_links(self) -> bool:
        return bool(self.resolved)


class BackfillScope(BaseModel):
    """回填范围"""

    creator_id: Optional[int] = None
    limit: Optional[int] = Field(default=None, gt=0)
    dry_run: bool = False


class UnmatchedEntry(BaseModel):
    """未匹配日志条目"""

    order_id: Optional[int] = None
    order_no: str
    dimension: IdentityDimension
    label: str


class BackfillReport(BaseModel):
    """回填结果"""

    scanned_count: int = 0
    updated_count: int = 0
    failed_count: int = 0
    promoters_linked: int = 0
    unmatched_total: int = 0
    unmatched_log: List[UnmatchedEntry] = Field(default_factory=list)
    dry_run: bool = False
