"""
线上订单商品识别：根据商品标题 / SKU 匹配商品
"""

from typing import Iterable, Optional

from ..models.registry import ProductEntry


def normalize_text(text: Optional[str]) -> str:
    """去除全部空白并转小写"""
    if not text:
        return ""
    return "".join(text.split()).lower()


def match_product_by_keywords(
    title: Optional[str],
    sku: Optional[str],
    products: Iterable[ProductEntry],
) -> Optional[ProductEntry]:
    """
    按商品匹配关键词识别

    标题或 SKU 包含关键词即命中，多个命中时取关键词最长者；
    长度相同保留先出现的商品。
    """
    title_key = normalize_text(title)
    sku_key = normalize_text(sku)
    if not title_key and not sku_key:
        return None

    matched: Optional[ProductEntry] = None
    matched_length = 0
    for product in products:
        for keyword in product.match_keywords:
            key = normalize_text(keyword)
            if not key:
                continue
            if key not in title_key and key not in sku_key:
                continue
            if matched is None or len(key) > matched_length:
                matched = product
                matched_length = len(key)
    return matched


def match_product_by_title(
    title: Optional[str],
    sku: Optional[str],
    products: Iterable[ProductEntry],
) -> Optional[ProductEntry]:
    """
    按商品名称识别

    先用标题匹配，标题未命中再用 SKU；取名称最长的商品。
    """
    products = list(products)

    def _scan(key: str) -> Optional[ProductEntry]:
        best: Optional[ProductEntry] = None
        best_length = 0
        for product in products:
            product_key = normalize_text(product.name)
            if not product_key or product_key not in key:
                continue
            if best is None or len(product_key) > best_length:
                best = product
                best_length = len(product_key)
        return best

    title_key = normalize_text(title)
    if title_key:
        found = _scan(title_key)
        if found:
            return found

    sku_key = normalize_text(sku)
    if sku_key:
        return _scan(sku_key)
    return None
