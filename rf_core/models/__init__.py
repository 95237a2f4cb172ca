"""
RentFlow 数据模型包
"""
from .base import Base
from .users import User
from .commission import AccountGroup, CommissionRule
from .channels import ChannelConfig
from .promoters import Promoter
from .products import Product
from .orders import Order, OrderExtension

__all__ = [
    "Base",
    "User",
    "AccountGroup",
    "CommissionRule",
    "ChannelConfig",
    "Promoter",
    "Product",
    "Order",
    "OrderExtension",
]
