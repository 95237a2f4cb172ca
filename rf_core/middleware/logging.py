"""
请求日志中间件

为每个请求分配 trace_id，并记录请求方法、路径、状态码与耗时。
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from rf_core.utils.logger import get_logger, LogContext


# 不记录日志的路径
SKIP_PATHS = {
    "/healthz",
    "/favicon.ico",
}

# 敏感查询参数
SENSITIVE_FIELDS = {"password", "secret", "token", "authorization"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.logging")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        method = request.method
        path = request.url.path
        skip = path in SKIP_PATHS
        start_time = time.time()

        with LogContext(trace_id=trace_id, component="api"):
            if not skip:
                self.logger.info(
                    "api_request",
                    method=method,
                    path=path,
                    client_ip=self._get_client_ip(request),
                    query_params=self._mask_sensitive(dict(request.query_params)) or None,
                )

            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    "api_request_failed",
                    method=method,
                    path=path,
                    latency_ms=int((time.time() - start_time) * 1000),
                    result="error",
                    err=str(e),
                    exc_info=True
                )
                raise

            if not skip:
                log = self.logger.warning if response.status_code >= 400 else self.logger.info
                log(
                    "api_response",
                    method=method,
                    path=path,
                    status_code=response.status_code,
                    latency_ms=int((time.time() - start_time) * 1000),
                    result="success" if response.status_code < 400 else "error",
                )

            response.headers["X-Trace-Id"] = trace_id
            return response

    def _mask_sensitive(self, data: dict) -> dict:
        return {
            key: "***MASKED***" if key.lower() in SENSITIVE_FIELDS else value
            for key, value in data.items()
        }

    def _get_client_ip(self, request: Request) -> str:
        """获取客户端 IP"""
        # 检查反向代理头部
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
