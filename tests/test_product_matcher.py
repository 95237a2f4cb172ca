"""
线上订单商品识别测试
"""
from plugins.rf.commission.models import ProductEntry
from plugins.rf.commission.services import (
    match_product_by_keywords,
    match_product_by_title,
    normalize_text,
)


def test_normalize_text():
    assert normalize_text(" iPhone 16 Pro\tMax ") == "iphone16promax"
    assert normalize_text(None) == ""


def test_match_by_keywords_prefers_longest_keyword(registry):
    product = match_product_by_keywords("【租赁】iPhone 16 Pro Max 256G 国行", None, registry.products)
    assert product.name == "iPhone 16 Pro Max"


def test_match_by_keywords_uses_sku(registry):
    product = match_product_by_keywords("手机租赁", "SKU-X300PRO-BLK", registry.products)
    assert product.id == 1


def test_match_by_keywords_no_hit(registry):
    assert match_product_by_keywords("相机租赁", "CAM-01", registry.products) is None
    assert match_product_by_keywords("", None, registry.products) is None


def test_match_by_title_falls_back_to_sku():
    products = [ProductEntry(id=1, name="大疆 Pocket 3"), ProductEntry(id=2, name="Pocket 3")]

    assert match_product_by_title("大疆Pocket3 全能套装", None, products).id == 1
    assert match_product_by_title("云台相机", "pocket3-标准版", products).id == 2
    assert match_product_by_title("云台相机", None, products) is None
