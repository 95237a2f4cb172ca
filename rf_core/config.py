"""
RentFlow Configuration Management
遵循约束：环境变量前缀 RF__
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """全局配置类"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RF__",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="rentflow")
    db_user: str = Field(default="rentflow")
    db_password: str = Field(default="")
    db_pool_size: int = Field(default=20)
    db_max_overflow: int = Field(default=40)
    db_url: Optional[str] = Field(default=None)  # 完整连接串，优先于上面的分项配置

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_prefix: str = Field(default="/api/rf/v1")
    api_title: str = Field(default="RentFlow API")
    api_version: str = Field(default="1.0.0")
    api_debug: bool = Field(default=False)

    # Monitoring
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    # 提成计算
    peer_channel_keyword: str = Field(default="同行")
    retail_channel_name: str = Field(default="零售")
    self_contact_label: str = Field(default="self")
    self_channel_label: str = Field(default="自主开发")
    unmarked_label: str = Field(default="未标记")

    # 身份解析
    containment_policy: str = Field(default="longest_match")  # first_found | longest_match
    product_alias_file: Optional[str] = Field(default=None)  # 为空时使用插件自带的别名表

    # 回填
    backfill_progress_every: int = Field(default=100)
    backfill_miss_log_limit: int = Field(default=20)
    backfill_enabled: bool = Field(default=False)
    backfill_cron: str = Field(default="30 3 * * *")

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v):
        """确保 API 前缀符合规范"""
        if not v.startswith("/api/rf/"):
            raise ValueError("API prefix must start with /api/rf/")
        return v

    @field_validator("containment_policy")
    @classmethod
    def validate_containment_policy(cls, v):
        if v not in ("first_found", "longest_match"):
            raise ValueError("containment_policy must be 'first_found' or 'longest_match'")
        return v

    @field_validator("backfill_progress_every")
    @classmethod
    def validate_progress_every(cls, v):
        if v < 1:
            raise ValueError("backfill_progress_every must be >= 1")
        return v

    @property
    def database_url(self) -> str:
        """构建数据库连接字符串"""
        if self.db_url:
            return self.db_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
