"""
枚举类型定义
"""

from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""

    PENDING_REVIEW = "PENDING_REVIEW"  # 待审核
    PENDING_SHIPMENT = "PENDING_SHIPMENT"  # 待发货
    PENDING_RECEIPT = "PENDING_RECEIPT"  # 待收货
    RENTING = "RENTING"  # 租赁中
    OVERDUE = "OVERDUE"  # 已逾期
    RETURNING = "RETURNING"  # 归还中
    COMPLETED = "COMPLETED"  # 已完成
    BOUGHT_OUT = "BOUGHT_OUT"  # 已买断
    CLOSED = "CLOSED"  # 已关闭/已退款


class RuleScope(str, Enum):
    """提成规则作用对象"""

    USER = "USER"  # 员工（账号）提成
    PROMOTER = "PROMOTER"  # 推广员提成


class RuleType(str, Enum):
    """提成规则类型"""

    QUANTITY = "QUANTITY"  # 按单量阶梯


class ContainmentPolicy(str, Enum):
    """包含匹配阶段出现多个候选时的取舍策略"""

    FIRST_FOUND = "first_found"  # 按登记顺序取第一个
    LONGEST_MATCH = "longest_match"  # 取规范化名称最长者，再按 ID 升序


class PeriodType(str, Enum):
    """统计周期"""

    CUMULATIVE = "cumulative"  # 累计
    MONTHLY = "monthly"  # 自然月
    CUSTOM = "custom"  # 自定义区间


class IdentityDimension(str, Enum):
    """订单待关联的维度"""

    PROMOTER = "promoter"
    PRODUCT = "product"
    CHANNEL = "channel"


class MatchStage(str, Enum):
    """名称匹配命中的阶段"""

    EXACT = "exact"
    CASE_INSENSITIVE = "case_insensitive"
    CONTAINMENT = "containment"
    NORMALIZED = "normalized"
