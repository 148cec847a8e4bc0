"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口与公共 HTTP 实现 (base)。
- 维护 Provider 描述符 (registry)。
- 提供各厂商的具体实现 (openai_client、mistral_client、gemini_client)。
"""

from typing import Dict, Mapping, Optional, Type

from chat_core.providers.base import HttpProviderClient, ProviderClient
from chat_core.providers.gemini_client import GeminiClient
from chat_core.providers.mistral_client import MistralClient
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import ProviderDescriptor, ProviderName


PROVIDER_CLASSES: Mapping[ProviderName, Type[HttpProviderClient]] = {
    "openai": OpenAIClient,
    "mistral": MistralClient,
    "gemini": GeminiClient,
}


def create_provider(descriptor: ProviderDescriptor, http_timeout: Optional[float] = None) -> ProviderClient:
    """根据描述符创建 Provider 实例。"""

    cls = PROVIDER_CLASSES.get(descriptor.id.lower())
    if cls is None:
        raise KeyError(f"Unknown provider: {descriptor.id!r}")
    return cls(descriptor, http_timeout=http_timeout)


def create_providers(
    descriptors: Mapping[str, ProviderDescriptor],
    http_timeout: Optional[float] = None,
) -> Dict[str, ProviderClient]:
    return {pid: create_provider(desc, http_timeout) for pid, desc in descriptors.items()}
