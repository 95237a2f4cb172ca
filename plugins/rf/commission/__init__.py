"""
RentFlow 提成插件
提供提成归属计算与订单身份解析 / 回填功能
"""

__version__ = "1.0.0"
