"""配置管理模块。

支持从构造参数、环境变量、.env 以及 config.yaml 加载配置。

核心组件（编排器、客户端）不直接读取模块级 settings，
而是在构造时接收一个显式的 InferenceConfig。
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("GARDEN_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 推理端点 ----
    gemini_api_key: Optional[str] = Field(default=None, description="推理端点 API 密钥")
    gemini_base_url: str = Field(default=DEFAULT_BASE_URL, description="推理端点基础URL")
    default_model: str = Field(
        default="plant-vision",
        description="逻辑模型名，由 registry 映射为具体模型",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    max_attempts: int = Field(default=5, ge=1, le=10, description="推理调用最大尝试次数")

    # ---- 会话存储 ----
    app_namespace: str = Field(default="default-app-id", description="应用命名空间，用于会话路径")
    history_window: int = Field(default=50, ge=1, le=200, description="订阅推送的最近消息条数")
    storage_root: str = Field(default=".storage", description="存储根目录")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()


@dataclass(frozen=True)
class InferenceConfig:
    """显式传入编排器与客户端的配置。

    - endpoint_base_url: 推理端点基础 URL。
    - api_key: 推理端点密钥，可为空（调用时才校验）。
    - namespace: 应用命名空间，用于构造 ConversationIdentity。
    - model: 逻辑模型名。
    - http_timeout: 单次 HTTP 调用超时（秒）。
    """

    endpoint_base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    namespace: str = "default-app-id"
    model: str = "plant-vision"
    http_timeout: float = 30.0

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "InferenceConfig":
        return cls(
            endpoint_base_url=cfg.gemini_base_url,
            api_key=cfg.gemini_api_key,
            namespace=cfg.app_namespace,
            model=cfg.default_model,
            http_timeout=cfg.http_timeout,
        )
