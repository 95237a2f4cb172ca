"""
身份解析器：把订单上的自由文本（推广员名、商品名、来源代码）
解析为主数据登记表中的规范记录

匹配级联，命中即停止：
1. 人工别名（仅商品）
2. 去首尾空白后精确匹配
3. 忽略大小写匹配
4. 包含匹配（双向）
5. 规范化匹配（小写、去空白、pro→p、plus→+，相等或双向包含）
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from rf_core.utils.logger import get_logger

from ..models.enums import ContainmentPolicy, IdentityDimension, MatchStage
from ..models.identity import IdentityMiss, ResolvedIdentities
from ..models.order import OrderFacts
from ..models.registry import ChannelEntry, ProductEntry, PromoterEntry, RegistrySnapshot

logger = get_logger(__name__)

T = TypeVar("T", PromoterEntry, ProductEntry, ChannelEntry)

DEFAULT_ALIAS_FILE = Path(__file__).resolve().parent.parent / "data" / "product_aliases.json"

# 来源代码 → 候选渠道名称（含中文别名），来源代码本身最后追加
SOURCE_CHANNEL_CANDIDATES: Dict[str, List[str]] = {
    "PEER": ["PEER", "同行"],
    "PART_TIME_AGENT": ["PART_TIME_AGENT", "兼职代理", "代理", "兼职"],
    "AGENT": ["AGENT", "代理", "兼职代理"],
    "PART_TIME": ["PART_TIME", "兼职", "兼职代理"],
    "RETAIL": ["RETAIL", "零售"],
}


def normalize_label(text: Optional[str]) -> str:
    """
    规范化名称

    >>> normalize_label("vivoX300 Pro")
    'vivox300p'
    """
    if not text:
        return ""
    key = "".join(text.split()).lower()
    return key.replace("pro", "p").replace("plus", "+")


def channel_candidates(source: Optional[str]) -> List[str]:
    """来源代码对应的候选渠道名称"""
    if not source or not source.strip():
        return []
    code = source.strip()
    names = list(SOURCE_CHANNEL_CANDIDATES.get(code, []))
    if code not in names:
        names.append(code)
    return names


@lru_cache(maxsize=8)
def load_product_aliases(path: Union[str, Path, None] = None) -> Dict[str, str]:
    """
    加载商品人工别名表（JSON 对象：错误名称 → 规范名称）

    同一路径只读取一次。
    """
    alias_path = Path(path) if path else DEFAULT_ALIAS_FILE
    with open(alias_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"product alias file must contain a JSON object: {alias_path}")

    aliases = {str(k).strip(): str(v).strip() for k, v in data.items()}
    logger.info("product_aliases_loaded", path=str(alias_path), count=len(aliases))
    return aliases


class IdentityResolver:
    """身份解析器（无状态，基于登记表快照）"""

    def __init__(
        self,
        registry: RegistrySnapshot,
        product_aliases: Optional[Dict[str, str]] = None,
        containment_policy: ContainmentPolicy = ContainmentPolicy.LONGEST_MATCH,
        self_label: str = "self",
    ):
        self.registry = registry
        self.product_aliases = product_aliases or {}
        self.containment_policy = ContainmentPolicy(containment_policy)
        self.self_label = self_label

    def _pick(self, hits: List[Tuple[T, str]]) -> Optional[T]:
        """包含类阶段多个候选时按策略取舍；hits 为 (候选, 规范化名称)"""
        if not hits:
            return None
        if self.containment_policy == ContainmentPolicy.FIRST_FOUND:
            return hits[0][0]
        return min(hits, key=lambda h: (-len(h[1]), h[0].id))[0]

    def match_label(
        self,
        label: Optional[str],
        candidates: Sequence[T],
        name_of: Callable[[T], str] = lambda c: c.name,
    ) -> Optional[Tuple[T, MatchStage]]:
        """
        按级联匹配自由文本

        Returns:
            (命中的候选, 命中阶段)；未命中返回 None
        """
        if not label or not label.strip():
            return None
        text = label.strip()
        lowered = text.lower()

        named = [(c, (name_of(c) or "").strip()) for c in candidates]
        # 空名称的登记项会包含任何文本，不参与匹配
        named = [(c, n) for c, n in named if n]

        for candidate, name in named:
            if name == text:
                return candidate, MatchStage.EXACT

        for candidate, name in named:
            if name.lower() == lowered:
                return candidate, MatchStage.CASE_INSENSITIVE

        hits = [(c, normalize_label(n)) for c, n in named if n in text or text in n]
        picked = self._pick(hits)
        if picked is not None:
            return picked, MatchStage.CONTAINMENT

        key = normalize_label(text)
        if key:
            hits = []
            for candidate, name in named:
                candidate_key = normalize_label(name)
                if candidate_key and (candidate_key == key or candidate_key in key or key in candidate_key):
                    hits.append((candidate, candidate_key))
            picked = self._pick(hits)
            if picked is not None:
                return picked, MatchStage.NORMALIZED

        return None

    def resolve_promoter(self, label: Optional[str]) -> Optional[PromoterEntry]:
        """解析推广员；空标签与 self 不解析"""
        if not label or not label.strip() or label.strip() == self.self_label:
            return None
        hit = self.match_label(label, self.registry.promoters)
        return hit[0] if hit else None

    def apply_product_alias(self, label: Optional[str]) -> str:
        text = (label or "").strip()
        return self.product_aliases.get(text, text)

    def resolve_product(self, label: Optional[str]) -> Optional[ProductEntry]:
        """解析商品，先套用人工别名"""
        name = self.apply_product_alias(label)
        if not name:
            return None
        hit = self.match_label(name, self.registry.products)
        return hit[0] if hit else None

    def resolve_channel_by_source(self, source: Optional[str]) -> Optional[ChannelEntry]:
        """按来源代码查找渠道：登记顺序中第一个名称落在候选列表里的渠道"""
        names = channel_candidates(source)
        if not names:
            return None
        for channel in self.registry.channels:
            if channel.name in names:
                return channel
        return None

    def channel_for_promoter(self, promoter: Optional[PromoterEntry]) -> Optional[ChannelEntry]:
        """推广员所属渠道：优先 channel_config_id，其次渠道名称"""
        if promoter is None:
            return None
        if promoter.channel_config_id is not None:
            channel = self.registry.channel_by_id(promoter.channel_config_id)
            if channel is not None:
                return channel
        return self.registry.channel_by_name(promoter.channel)

    def resolve_identities(self, order: OrderFacts) -> ResolvedIdentities:
        """
        解析订单缺失的外键

        已有外键保持不变；推广员（已有或新解析）可补全渠道，
        仍缺渠道时再查来源代码表。重复调用结果一致。
        """
        result = ResolvedIdentities(
            promoter_id=order.promoter_id,
            product_id=order.product_id,
            channel_id=order.channel_id,
        )

        promoter: Optional[PromoterEntry] = None
        if result.promoter_id is None:
            label = (order.source_contact or "").strip()
            if label and label != self.self_label:
                promoter = self.resolve_promoter(label)
                if promoter is not None:
                    result.promoter_id = promoter.id
                    result.resolved.append(IdentityDimension.PROMOTER)
                else:
                    result.misses.append(IdentityMiss(dimension=IdentityDimension.PROMOTER, label=label))
        else:
            promoter = self.registry.promoter_by_id(result.promoter_id)

        if result.product_id is None and order.product_name and order.product_name.strip():
            product = self.resolve_product(order.product_name)
            if product is not None:
                result.product_id = product.id
                result.resolved.append(IdentityDimension.PRODUCT)
            else:
                result.misses.append(
                    IdentityMiss(
                        dimension=IdentityDimension.PRODUCT,
                        label=self.apply_product_alias(order.product_name),
                    )
                )

        if result.channel_id is None:
            channel = self.channel_for_promoter(promoter)
            if channel is None and order.source and order.source.strip():
                channel = self.resolve_channel_by_source(order.source)
                if channel is None:
                    result.misses.append(
                        IdentityMiss(dimension=IdentityDimension.CHANNEL, label=order.source.strip())
                    )
            if channel is not None:
                result.channel_id = channel.id
                result.resolved.append(IdentityDimension.CHANNEL)

        return result
