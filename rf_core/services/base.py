"""
基础服务类
"""
from typing import TypeVar, Generic, Optional, Dict, Any
from dataclasses import dataclass

T = TypeVar('T')


@dataclass
class ServiceResult(Generic[T]):
    """服务执行结果"""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ServiceResult[T]":
        """成功结果"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def error(cls, error: str, error_code: Optional[str] = None) -> "ServiceResult[T]":
        """失败结果"""
        return cls(success=False, error=error, error_code=error_code)
