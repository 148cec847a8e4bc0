"""Provider 描述符与注册表。

每个已知 Provider 对应一个 ProviderDescriptor（端点、模型、token 上限、温度、API Key）。
描述符表由配置构建后显式注入 ProviderRouter，不存在隐藏的全局查找。

API Key 为空是合法且可检查的状态（has_credential），本身不是错误。
"""

from dataclasses import dataclass, replace
from typing import Dict, Literal, Mapping, Optional, Tuple, get_args

from chat_core.domain.exceptions import ConfigurationError


ProviderName = Literal["openai", "mistral", "gemini"]

PROVIDER_IDS: Tuple[str, ...] = get_args(ProviderName)


@dataclass(frozen=True)
class ProviderDescriptor:
    """单个 Provider 的连接配置。"""

    id: ProviderName
    endpoint: str
    model: str
    max_tokens: int
    temperature: float
    api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.id not in PROVIDER_IDS:
            raise ConfigurationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {self.id!r}")
        if self.max_tokens <= 0:
            raise ConfigurationError(code="INVALID_DESCRIPTOR", message="max_tokens must be > 0")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(code="INVALID_DESCRIPTOR", message="temperature must be within [0, 2]")

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def with_api_key(self, api_key: Optional[str]) -> "ProviderDescriptor":
        return replace(self, api_key=(api_key or "").strip() or None)


OPENAI_DESCRIPTOR = ProviderDescriptor(
    id="openai",
    endpoint="https://api.openai.com/v1/chat/completions",
    model="gpt-3.5-turbo",
    max_tokens=1000,
    temperature=0.7,
)

MISTRAL_DESCRIPTOR = ProviderDescriptor(
    id="mistral",
    endpoint="https://api.mistral.ai/v1/chat/completions",
    model="mistral-small-latest",
    max_tokens=1000,
    temperature=0.7,
)

GEMINI_DESCRIPTOR = ProviderDescriptor(
    id="gemini",
    endpoint="https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent",
    model="gemini-2.0-flash",
    max_tokens=1000,
    temperature=0.7,
)


DEFAULT_DESCRIPTORS: Mapping[str, ProviderDescriptor] = {
    "openai": OPENAI_DESCRIPTOR,
    "mistral": MISTRAL_DESCRIPTOR,
    "gemini": GEMINI_DESCRIPTOR,
}


def descriptors_from_settings(cfg) -> Dict[str, ProviderDescriptor]:
    """根据配置对象构建完整的描述符表（字段缺失时使用默认值）。"""

    table: Dict[str, ProviderDescriptor] = {}
    for pid, default in DEFAULT_DESCRIPTORS.items():
        table[pid] = ProviderDescriptor(
            id=pid,
            endpoint=getattr(cfg, f"{pid}_endpoint", None) or default.endpoint,
            model=getattr(cfg, f"{pid}_model", None) or default.model,
            max_tokens=getattr(cfg, f"{pid}_max_tokens", None) or default.max_tokens,
            temperature=getattr(cfg, f"{pid}_temperature", default.temperature),
            api_key=getattr(cfg, f"{pid}_api_key", None),
        )
    return table


def get_provider_descriptor(descriptors: Mapping[str, ProviderDescriptor], name: str) -> ProviderDescriptor:
    """根据名称获取 ProviderDescriptor，名称不区分大小写。"""

    key = name.lower()
    for k, desc in descriptors.items():
        if k.lower() == key:
            return desc
    raise KeyError(f"Unknown provider: {name!r}")


def looks_like_api_key(provider_id: str, api_key: Optional[str]) -> bool:
    """粗略校验 API Key 格式，仅用于给出提示，不阻止保存。"""

    key = (api_key or "").strip()
    if not key:
        return False
    if provider_id == "openai":
        return key.startswith("sk-") and len(key) > 20
    if provider_id == "mistral":
        return key.startswith("mistral-") and len(key) > 20
    if provider_id == "gemini":
        return len(key) > 20
    return False
