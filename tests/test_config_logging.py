"""
配置与日志处理器测试
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from rf_core.config import Settings
from rf_core.utils.errors import NotFoundError
from rf_core.utils.logger import LogContext, PIIMaskingProcessor, RentFlowProcessor, trace_id_var


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("RF__CONTAINMENT_POLICY", raising=False)
    settings = Settings(_env_file=None)

    assert settings.containment_policy == "longest_match"
    assert settings.retail_channel_name == "零售"
    assert settings.backfill_enabled is False
    assert settings.database_url.startswith("postgresql+asyncpg://")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("RF__CONTAINMENT_POLICY", "first_found")
    monkeypatch.setenv("RF__DB_URL", "sqlite+aiosqlite:///:memory:")

    settings = Settings(_env_file=None)

    assert settings.containment_policy == "first_found"
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"


@pytest.mark.parametrize(
    "field,value",
    [("api_prefix", "/api/v1"), ("containment_policy", "random"), ("backfill_progress_every", 0)],
)
def test_settings_validation(field, value):
    with pytest.raises(PydanticValidationError):
        Settings(_env_file=None, **{field: value})


def test_pii_masking():
    masked = PIIMaskingProcessor()(None, "info", {
        "phone": "联系人 13812345678",
        "nested": {"token": "token=abc123"},
        "items": ["110101199001011234"],
    })

    assert masked["phone"] == "联系人 138****5678"
    assert masked["nested"]["token"] == "token=***MASKED***"
    assert masked["items"] == ["110101********1234"]


def test_log_context_adds_trace_fields():
    with LogContext(trace_id="job-1", component="scheduler", user_id=7):
        event = RentFlowProcessor()(None, "info", {"event": "backfill_started"})

    assert event["action"] == "backfill_started"
    assert event["trace_id"] == "job-1"
    assert event["component"] == "scheduler"
    assert event["user_id"] == 7
    assert trace_id_var.get() is None


def test_problem_detail_response():
    response = NotFoundError(code="ORDER_NOT_FOUND", resource="order 9").to_response()

    assert response.status_code == 404
    assert b'"code":"ORDER_NOT_FOUND"' in response.body
    assert b'"detail":"order 9 not found"' in response.body
