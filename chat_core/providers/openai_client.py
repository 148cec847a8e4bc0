"""OpenAI Provider 适配器。

使用 chat/completions 端点：
- URL: descriptor.endpoint
- 认证: Authorization: Bearer <api_key>
- 请求体: model/messages/max_tokens/temperature/stream
- 回复: choices[0].message.content

Mistral 的接口与之兼容，见 mistral_client。
"""

from typing import Any, Dict, List, Optional, Sequence

from chat_core.domain.models import Turn
from chat_core.providers.base import HttpProviderClient


class OpenAIClient(HttpProviderClient):
    """OpenAI 兼容协议的客户端实现。"""

    name = "openai"
    label = "OpenAI"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.descriptor.api_key}",
        }

    def _chat_payload(self, system_prompt: str, turns: Sequence[Turn]) -> Dict[str, Any]:
        msgs: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
        msgs.extend({"role": t.role, "content": t.content} for t in turns)
        return self._payload(msgs, self.descriptor.max_tokens, self.descriptor.temperature)

    def _translate_payload(self, system_prompt: str, text: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
        msgs = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": text},
        ]
        return self._payload(msgs, max_tokens, temperature)

    def _payload(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> Dict[str, Any]:
        return {
            "model": self.descriptor.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }

    def _extract_reply(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        choice = self._first(data.get("choices"))
        if not isinstance(choice, dict):
            return None
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            return None
        return self._text_or_none(message.get("content"))
