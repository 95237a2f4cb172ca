"""
RentFlow API 路由模块
"""

from fastapi import APIRouter

from .commission_routes import router as commission_router
from .identity_routes import router as identity_router

# 创建主路由器
api_router = APIRouter()

api_router.include_router(commission_router)
api_router.include_router(identity_router)

__all__ = ["api_router"]
