"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """数据库配置"""
    path: str = "data/analytics.db"
    timeout: int = 30


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cron_secret: Optional[str] = None


class CollectorConfig(BaseModel):
    """采集配置"""
    interval: int = 300
    timeout: float = 5.0
    max_concurrency: int = 10
    enabled: bool = True
    collect_url: str = "http://localhost:8080/api/analytics/collect"


class PredictionConfig(BaseModel):
    """预测配置"""
    history_days: int = 30
    past_ratio: float = 0.8
    min_data_points: int = 12


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvOverrides(BaseSettings):
    """环境变量覆盖项（前缀 ANALYTICS_）"""
    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    config_path: str = "config.yaml"
    cron_secret: Optional[str] = None
    database_path: Optional[str] = None
    log_level: Optional[str] = None


def _apply_overrides(config: AppConfig, env: EnvOverrides) -> AppConfig:
    if env.cron_secret:
        config.api.cron_secret = env.cron_secret
    if env.database_path:
        config.database.path = env.database_path
    if env.log_level:
        config.logging.level = env.log_level
    return config


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 ANALYTICS_CONFIG_PATH
    3. 默认路径 config.yaml

    文件中的相对路径以配置文件所在目录为基准。
    """
    env = EnvOverrides()
    if config_path is None:
        config_path = env.config_path

    config_file = Path(config_path)
    if not config_file.exists():
        # 配置文件不存在时使用默认配置
        return _apply_overrides(AppConfig(), env)

    with open(config_file, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    base_dir = config_file.resolve().parent

    def _resolve_path(value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        path = Path(value)
        if path.is_absolute():
            return str(path)
        return str((base_dir / path).resolve())

    raw_config.setdefault("database", {})
    raw_config["database"]["path"] = _resolve_path(
        raw_config["database"].get("path", DatabaseConfig().path)
    )

    raw_config.setdefault("logging", {})
    raw_config["logging"]["file"] = _resolve_path(raw_config["logging"].get("file"))

    return _apply_overrides(AppConfig(**raw_config), env)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def init_config(config_path: Optional[str] = None) -> AppConfig:
    """按指定路径加载并替换全局配置（命令行 --config 使用）"""
    global _config
    _config = load_config(config_path)
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
