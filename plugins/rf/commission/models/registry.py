"""
主数据登记表快照（推广员、渠道、商品）

快照按 ID 升序加载，解析器的 "按登记顺序取第一个" 策略依赖这一顺序。
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class PromoterEntry(BaseModel):
    """推广员"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    channel: Optional[str] = None  # 渠道名称（旧字段）
    channel_config_id: Optional[int] = None
    creator_id: Optional[int] = None


class ChannelEntry(BaseModel):
    """渠道配置"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_enabled: bool = True
    settlement_by_completed: bool = True


class ProductEntry(BaseModel):
    """商品"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    match_keywords: List[str] = Field(default_factory=list)


class RegistrySnapshot(BaseModel):
    """登记表快照，附带按 ID / 名称的查找索引"""

    promoters: List[PromoterEntry] = Field(default_factory=list)
    channels: List[ChannelEntry] = Field(default_factory=list)
    products: List[ProductEntry] = Field(default_factory=list)

    _promoters_by_id: Dict[int, PromoterEntry] = PrivateAttr(default_factory=dict)
    _promoters_by_name: Dict[str, PromoterEntry] = PrivateAttr(default_factory=dict)
    _channels_by_id: Dict[int, ChannelEntry] = PrivateAttr(default_factory=dict)
    _channels_by_name: Dict[str, ChannelEntry] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        self._promoters_by_id = {p.id: p for p in self.promoters}
        self._channels_by_id = {c.id: c for c in self.channels}
        # 同名时保留第一个
        for p in self.promoters:
            self._promoters_by_name.setdefault(p.name, p)
        for c in self.channels:
            self._channels_by_name.setdefault(c.name, c)

    @property
    def promoter_names(self) -> frozenset:
        return frozenset(self._promoters_by_name)

    def promoter_by_id(self, promoter_id: Optional[int]) -> Optional[PromoterEntry]:
        if promoter_id is None:
            return None
        return self._promoters_by_id.get(promoter_id)

    def promoter_by_name(self, name: Optional[str]) -> Optional[PromoterEntry]:
        if not name:
            return None
        return self._promoters_by_name.get(name)

    def channel_by_id(self, channel_id: Optional[int]) -> Optional[ChannelEntry]:
        if channel_id is None:
            return None
        return self._channels_by_id.get(channel_id)

    def channel_by_name(self, name: Optional[str]) -> Optional[ChannelEntry]:
        if not name:
            return None
        return self._channels_by_name.get(name)
