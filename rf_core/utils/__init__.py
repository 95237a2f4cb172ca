"""
RentFlow 实用工具模块
"""

from .logger import get_logger, LogContext, setup_logging
from .errors import RentFlowException, ValidationError, NotFoundError, ConflictError

__all__ = [
    "get_logger",
    "LogContext",
    "setup_logging",
    "RentFlowException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
]
