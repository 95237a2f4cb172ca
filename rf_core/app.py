"""
RentFlow FastAPI 主应用
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from rf_core.config import get_settings
from rf_core.utils.logger import setup_logging, get_logger
from rf_core.utils.errors import RentFlowException
from rf_core.database import get_db_manager
from rf_core.middleware.logging import LoggingMiddleware
from rf_core.tasks.scheduler import TaskScheduler
from rf_core.tasks.backfill_task import register_backfill_job
from rf_core.services.identity_service import BackfillGuard
from rf_core.api import api_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    settings = get_settings()

    logger.info("Starting RentFlow application", version=settings.api_version)

    db_manager = get_db_manager()
    if not await db_manager.check_connection():
        logger.error("Database connection check failed")
        raise RuntimeError("Database connection failed")
    await db_manager.create_tables()

    # 调度器随应用创建，挂在 app.state 上，与 API 共用回填锁
    scheduler = TaskScheduler()
    register_backfill_job(
        scheduler, settings=settings, db_manager=db_manager, guard=app.state.backfill_guard
    )
    await scheduler.start()
    app.state.scheduler = scheduler

    logger.info("RentFlow application started successfully")

    try:
        yield
    finally:
        logger.info("Shutting down RentFlow application")
        try:
            await scheduler.shutdown()
            await db_manager.close()
            logger.info("RentFlow application shutdown complete")
        except Exception:
            logger.error("Error during application shutdown", exc_info=True)


def create_app(use_lifespan: bool = True) -> FastAPI:
    """创建 FastAPI 应用"""
    settings = get_settings()

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format
    )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="RentFlow Rental Order Commission API",
        docs_url="/docs" if settings.api_debug else None,
        redoc_url="/redoc" if settings.api_debug else None,
        openapi_url="/openapi.json" if settings.api_debug else None,
        lifespan=lifespan if use_lifespan else None,
    )

    app.state.backfill_guard = BackfillGuard()

    app.add_middleware(LoggingMiddleware)

    app.include_router(api_router, prefix=settings.api_prefix)

    # 异常处理器
    @app.exception_handler(RentFlowException)
    async def rentflow_exception_handler(request: Request, exc: RentFlowException):
        """处理 RentFlow 自定义异常"""
        return exc.to_response(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理 Pydantic 验证异常"""
        logger.warning(f"验证错误 - URL: {request.url.path}, 详情: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": "Validation Error",
                    "status": 422,
                    "detail": "Request validation failed",
                    "code": "VALIDATION_ERROR",
                    "validation_errors": jsonable_encoder(exc.errors())
                }
            }
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """处理 FastAPI HTTP 异常"""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": str(exc.detail),
                    "status": exc.status_code,
                    "detail": str(exc.detail),
                    "code": f"HTTP_{exc.status_code}"
                }
            }
        )

    @app.get("/healthz")
    async def health_check():
        """健康检查端点"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "rf_core.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level=settings.log_level.lower(),
        access_log=False,  # 使用自定义日志中间件
    )
