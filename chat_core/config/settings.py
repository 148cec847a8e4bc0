"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
Provider 相关字段按 `<provider>_<field>` 平铺，例如 OPENAI_API_KEY、GEMINI_MODEL。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
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


class ChatSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 通用 ----
    default_provider: str = Field(
        default="openai",
        description="启动时激活的 Provider，例如 openai、mistral、gemini",
    )
    max_context_turns: int = Field(default=10, ge=0, description="上下文窗口保留的最大 Turn 数")
    http_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="HTTP 超时时间（秒），为空表示不设超时",
    )
    storage_root: str = Field(default=".storage", description="会话存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- OpenAI ----
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_endpoint: str = Field(default="https://api.openai.com/v1/chat/completions")
    openai_model: str = Field(default="gpt-3.5-turbo")
    openai_max_tokens: int = Field(default=1000, gt=0)
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # ---- Mistral ----
    mistral_api_key: Optional[str] = Field(default=None, description="Mistral API 密钥")
    mistral_endpoint: str = Field(default="https://api.mistral.ai/v1/chat/completions")
    mistral_model: str = Field(default="mistral-small-latest")
    mistral_max_tokens: int = Field(default=1000, gt=0)
    mistral_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # ---- Gemini ----
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent",
    )
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_max_tokens: int = Field(default=1000, gt=0)
    gemini_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "mistral_api_key", "gemini_api_key")
    @classmethod
    def strip_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

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


settings = ChatSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = ChatSettings
