# mypy: disable-error-code="no-untyped-def, assignment, var-annotated"
"""
RentFlow 日志系统
- JSON 格式输出
- 必需字段：ts, level, trace_id, component, action, user_id, result, err
- PII 自动脱敏（手机号、证件号、密钥）
"""
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level

# Context variables for request / job tracking
trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
component_var: ContextVar[Optional[str]] = ContextVar("component", default=None)
user_id_var: ContextVar[Optional[int]] = ContextVar("user_id", default=None)


class PIIMaskingProcessor:
    """PII 数据脱敏处理器"""

    PATTERNS = {
        # 大陆手机号：保留前3位和后4位
        "mobile": (re.compile(r"(?<!\d)(1[3-9]\d)\d{4}(\d{4})(?!\d)"), r"\1****\2"),
        # 身份证号：保留前6位
        "id_card": (re.compile(r"(?<!\d)(\d{6})\d{8}(\d{3}[\dXx])(?!\d)"), r"\1********\2"),
        # Token/密钥
        "token": (re.compile(r"(token|key|secret|password)[\"']?\s*[:=]\s*[\"']?([^\"'\s,}]+)"), r"\1=***MASKED***"),
    }

    def __call__(self, logger, method_name, event_dict):
        return self._mask_dict(event_dict)

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """递归脱敏字典中的 PII 数据"""
        if not isinstance(data, dict):
            return data

        masked_data = {}
        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self._mask_string(value)
            elif isinstance(value, dict):
                masked_data[key] = self._mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [
                    (
                        self._mask_dict(item)
                        if isinstance(item, dict)
                        else self._mask_string(item) if isinstance(item, str) else item
                    )
                    for item in value
                ]
            else:
                masked_data[key] = value
        return masked_data

    def _mask_string(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS.values():
            text = pattern.sub(replacement, text)
        return text


class RentFlowProcessor:
    """添加 RentFlow 必需字段"""

    def __call__(self, logger, method_name, event_dict):
        event_dict["ts"] = datetime.now(timezone.utc).isoformat()

        if trace_id := trace_id_var.get():
            event_dict["trace_id"] = trace_id

        if component := component_var.get():
            event_dict["component"] = component

        if user_id := user_id_var.get():
            event_dict["user_id"] = user_id

        # 重命名标准字段
        if "event" in event_dict:
            event_dict["action"] = event_dict.pop("event")

        if "exception" in event_dict:
            event_dict["err"] = str(event_dict.pop("exception"))

        return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "json", enable_pii_masking: bool = True) -> None:
    """配置日志系统

    structlog 与标准 logging 统一输出到 stdout。
    """
    level = getattr(logging, log_level.upper())

    processors = [
        structlog.stdlib.add_logger_name,
        TimeStamper(fmt="iso"),
        add_log_level,
        structlog.processors.format_exc_info,
        RentFlowProcessor(),
    ]

    if enable_pii_masking:
        processors.append(PIIMaskingProcessor())

    if log_format == "json":
        processors.append(JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # 移除已有的 handlers，避免重复输出
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(level)
    if log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S"
        )
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    for module in ("plugins", "plugins.rf", "plugins.rf.commission", "rf_core"):
        module_logger = logging.getLogger(module)
        module_logger.setLevel(level)
        module_logger.propagate = True

    # 降低第三方库的日志级别
    for logger_name in ("asyncio", "uvicorn.access", "sqlalchemy.engine", "apscheduler"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取日志记录器"""
    return structlog.get_logger(name)


class LogContext:
    """日志上下文管理器，用于设置请求 / 任务级别的上下文"""

    def __init__(self, trace_id: Optional[str] = None, component: Optional[str] = None, user_id: Optional[int] = None):
        self.trace_id = trace_id
        self.component = component
        self.user_id = user_id
        self._tokens = []

    def __enter__(self):
        if self.trace_id:
            self._tokens.append(trace_id_var.set(self.trace_id))
        if self.component:
            self._tokens.append(component_var.set(self.component))
        if self.user_id:
            self._tokens.append(user_id_var.set(self.user_id))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self._tokens):
            token.var.reset(token)
