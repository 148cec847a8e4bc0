"""Provider 抽象接口与公共 HTTP 实现。

上层 ProviderRouter 不直接依赖具体厂商的请求格式，而是依赖 ProviderClient 协议：

- send_chat(turns): 固定系统指令 + 完整上下文，返回第一条回复文本。
- send_translate(text, source, target): 无状态的单轮翻译请求。

各厂商的差异只在于请求信封的形状与回复字段的提取路径，
因此公共的 HTTP 调用、错误映射和兜底逻辑集中在 HttpProviderClient，
子类只需覆写 _chat_payload / _translate_payload / _extract_reply 等钩子。
"""

from typing import Any, Dict, Optional, Protocol, Sequence

import httpx

from chat_core.domain.exceptions import ConfigurationError, NetworkError, ProviderError
from chat_core.domain.models import Turn
from chat_core.infrastructure.logging.logger import logger
from chat_core.prompts import build_translate_prompt, load_system_prompt
from chat_core.providers.registry import ProviderDescriptor


TRANSLATE_MAX_TOKENS = 1000
TRANSLATE_TEMPERATURE = 0.2


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - descriptor: 当前使用的连接配置。
    - send_chat / send_translate: 见模块说明。
    """

    name: str
    descriptor: ProviderDescriptor

    def send_chat(self, turns: Sequence[Turn]) -> str:
        ...

    def send_translate(self, text: str, source: str = "auto", target: str = "English") -> str:
        ...


class HttpProviderClient:
    """基于 httpx 的 ProviderClient 公共实现。"""

    name = ""
    label = ""

    def __init__(self, descriptor: ProviderDescriptor, http_timeout: Optional[float] = None):
        self.descriptor = descriptor
        self._http_timeout = http_timeout

    # ---- 对外接口 ----

    def send_chat(self, turns: Sequence[Turn]) -> str:
        """执行一次对话调用。

        步骤：
        1. 校验 API Key（缺失时不发起任何网络请求）。
        2. 构造厂商请求体（系统指令 + 上下文）。
        3. 发送请求并把非 2xx / 网络错误映射为 ProviderError。
        4. 提取第一条回复；响应合法但没有回复字段时返回占位文本。
        """

        self._require_api_key()
        payload = self._chat_payload(load_system_prompt("chat_system"), turns)
        data = self._post(payload)
        reply = self._extract_reply(data)
        if not reply:
            logger.warning(
                f"{self.label} returned no usable reply",
                extra={"extra": {"provider": self.name}},
            )
            return self.no_reply_text
        return reply

    def send_translate(self, text: str, source: str = "auto", target: str = "English") -> str:
        """单轮翻译，不携带任何对话历史。"""

        self._require_api_key()
        payload = self._translate_payload(
            build_translate_prompt(source, target),
            text,
            max_tokens=min(TRANSLATE_MAX_TOKENS, self.descriptor.max_tokens),
            temperature=TRANSLATE_TEMPERATURE,
        )
        data = self._post(payload)
        return (self._extract_reply(data) or "").strip()

    @property
    def no_reply_text(self) -> str:
        return f"No response from {self.label}"

    # ---- 子类钩子 ----

    def _chat_payload(self, system_prompt: str, turns: Sequence[Turn]) -> Dict[str, Any]:
        raise NotImplementedError

    def _translate_payload(self, system_prompt: str, text: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
        raise NotImplementedError

    def _extract_reply(self, data: Any) -> Optional[str]:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _params(self) -> Optional[Dict[str, str]]:
        return None

    # ---- 辅助方法 ----

    def _require_api_key(self) -> None:
        if not self.descriptor.has_credential:
            # 配置缺失走 ConfigurationError，方便上层统一处理
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message=f"{self.label} API key not configured",
                provider=self.name,
            )

    def _post(self, payload: Dict[str, Any]) -> Any:
        request_kwargs: Dict[str, Any] = {"json": payload, "headers": self._headers()}
        params = self._params()
        if params:
            request_kwargs["params"] = params
        try:
            with httpx.Client(timeout=self._http_timeout, trust_env=False) as client:
                resp = client.post(self.descriptor.endpoint, **request_kwargs)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝等
            raise NetworkError(f"{self.label} request failed: {e}", provider=self.name)
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ProviderError(self._error_message(resp), status=resp.status_code, provider=self.name)
        try:
            return resp.json()
        except ValueError:
            raise ProviderError(
                f"{self.label} API error: {resp.status_code} - invalid JSON body",
                status=resp.status_code,
                provider=self.name,
            )

    def _error_message(self, resp) -> str:
        """组合 HTTP 状态码与厂商错误信息，缺失时回退到状态描述。"""

        detail = None
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict):
                detail = err.get("message")
            elif isinstance(err, str):
                detail = err
        return f"{self.label} API error: {resp.status_code} - {detail or resp.reason_phrase}"

    @staticmethod
    def _first(items: Any) -> Any:
        if isinstance(items, list) and items:
            return items[0]
        return None

    @staticmethod
    def _text_or_none(value: Any) -> Optional[str]:
        if isinstance(value, str) and value:
            return value
        return None
