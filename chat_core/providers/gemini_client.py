"""Google Gemini Provider 适配器。

Gemini 的 generateContent 接口与 OpenAI 风格差异较大：

1. API Key 通过查询参数 `?key=<api_key>` 传递，而不是 Authorization 头。
2. 请求体为 contents:[{role, parts:[{text}]}] + generationConfig。
3. 没有 system 角色：系统指令作为第一条 user 消息发送。
4. 角色词表为 user/model，assistant 需要映射为 model。
5. 回复位于 candidates[0].content.parts[0].text。
"""

from typing import Any, Dict, List, Optional, Sequence

from chat_core.domain.models import Turn
from chat_core.providers.base import HttpProviderClient


# 出站角色映射；system 以 user 身份发送（Gemini 不支持 system 角色）
ROLE_MAP = {
    "user": "user",
    "assistant": "model",
    "system": "user",
}


class GeminiClient(HttpProviderClient):
    """Gemini 客户端实现。"""

    name = "gemini"
    label = "Gemini"

    def _params(self) -> Optional[Dict[str, str]]:
        return {"key": self.descriptor.api_key or ""}

    def _chat_payload(self, system_prompt: str, turns: Sequence[Turn]) -> Dict[str, Any]:
        contents = [self._content("user", system_prompt)]
        contents.extend(self._content(ROLE_MAP[t.role], t.content) for t in turns)
        return self._payload(contents, self.descriptor.max_tokens, self.descriptor.temperature)

    def _translate_payload(self, system_prompt: str, text: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
        contents = [
            self._content("user", system_prompt),
            self._content("user", text),
        ]
        return self._payload(contents, max_tokens, temperature)

    @staticmethod
    def _content(role: str, text: str) -> Dict[str, Any]:
        return {"role": role, "parts": [{"text": text}]}

    @staticmethod
    def _payload(contents: List[Dict[str, Any]], max_tokens: int, temperature: float) -> Dict[str, Any]:
        return {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }

    def _extract_reply(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        candidate = self._first(data.get("candidates"))
        if not isinstance(candidate, dict):
            return None
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            return None
        part = self._first(content.get("parts"))
        if not isinstance(part, dict):
            return None
        return self._text_or_none(part.get("text"))
