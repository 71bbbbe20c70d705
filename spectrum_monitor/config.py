"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """键值存储配置"""
    path: str = "data/spectrum.db"
    timeout: int = 30


ADMIN_TOKEN_PLACEHOLDER = "CHANGE_ME_IN_PRODUCTION"


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8787
    cors_origins: List[str] = ["*"]
    admin_token: str = ADMIN_TOKEN_PLACEHOLDER


class FrontendConfig(BaseModel):
    """前端（仪表盘静态文件）配置"""
    path: str = "public"
    enabled: bool = True


class SourceConfig(BaseSettings):
    """
    Spectrum API 配置

    凭据可以通过环境变量覆盖（SPECTRUM_ZONE_ID、SPECTRUM_API_TOKEN 等）。
    """
    model_config = SettingsConfigDict(env_prefix="SPECTRUM_", extra="ignore")

    base_url: str = "https://api.cloudflare.com/client/v4"
    zone_id: str = ""
    account_id: str = ""
    api_token: Optional[str] = None
    auth_email: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 30.0
    analytics_limit: int = 10000
    analytics_window_hours: int = 24


class AggregationConfig(BaseModel):
    """聚合配置（对应两种部署形态）"""
    unit: Literal["bits", "bytes"] = "bits"
    connection_source: Literal["sessions", "analytics"] = "sessions"


class TimeseriesConfig(BaseModel):
    """时间序列配置"""
    capacity: int = Field(default=200, ge=1)
    ttl_seconds: int = Field(default=60 * 60 * 24, ge=1)


class SnapshotConfig(BaseModel):
    """每日快照配置"""
    ttl_seconds: int = Field(default=60 * 60 * 24 * 30, ge=1)
    history_days: int = Field(default=30, ge=1)


class SchedulerConfig(BaseModel):
    """定时刷新配置"""
    enabled: bool = True
    interval: int = 60
    cleanup_interval: int = 3600


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    frontend: FrontendConfig = Field(default_factory=FrontendConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    timeseries: TimeseriesConfig = Field(default_factory=TimeseriesConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 SPECTRUM_MONITOR_CONFIG
    3. 默认路径 config.yaml
    """
    if config_path is None:
        config_path = os.environ.get("SPECTRUM_MONITOR_CONFIG", "config.yaml")

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
        if raw_config:
            # 相对路径以配置文件所在目录为基准，避免依赖 CWD
            base_dir = config_file.resolve().parent

            def _resolve_path(value: str) -> str:
                path = Path(value)
                if path.is_absolute():
                    return str(path)
                return str((base_dir / path).resolve())

            for section, key in (("storage", "path"), ("frontend", "path"), ("logging", "file")):
                values = raw_config.get(section)
                if values and values.get(key):
                    values[key] = _resolve_path(values[key])

            # 环境变量中的凭据优先于文件中的值
            source = dict(raw_config.get("source") or {})
            env_source = SourceConfig()
            for name in SourceConfig.model_fields:
                if f"SPECTRUM_{name.upper()}" in os.environ:
                    source[name] = getattr(env_source, name)
            raw_config["source"] = source

            return AppConfig(**raw_config)

    # 配置文件不存在时使用默认配置
    return AppConfig()


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
