"""Mistral Provider 适配器。

Mistral 的 chat/completions 与 OpenAI 完全兼容（Bearer 认证、同样的请求体与
choices[0].message.content 回复路径），只是名称和错误信息前缀不同。
"""

from chat_core.providers.openai_client import OpenAIClient


class MistralClient(OpenAIClient):
    """Mistral 客户端实现。"""

    name = "mistral"
    label = "Mistral"
