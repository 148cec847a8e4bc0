"""Provider 路由器。

ProviderRouter 是调用 Provider 的唯一入口：选择当前激活的 ProviderClient，
持有 ConversationContext，并保证“先追加 user Turn → 调用 → 成功后追加 assistant Turn”
的顺序。任何绕过 dispatch 直接调用 ProviderClient 的做法都会让历史与真实交互脱节。
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from chat_core.domain.conversation import DEFAULT_CAPACITY, ConversationContext
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import ProbeResult, Turn
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_provider
from chat_core.providers.base import ProviderClient
from chat_core.providers.registry import ProviderDescriptor


PROBE_MESSAGE = "Hello, this is a test message."

ClientFactory = Callable[[ProviderDescriptor, Optional[float]], ProviderClient]


class ProviderRouter:
    def __init__(
        self,
        descriptors: Mapping[str, ProviderDescriptor],
        active: str = "openai",
        capacity: int = DEFAULT_CAPACITY,
        clients: Optional[Mapping[str, ProviderClient]] = None,
        client_factory: ClientFactory = create_provider,
        http_timeout: Optional[float] = None,
    ):
        if not descriptors:
            raise ValueError("at least one provider descriptor is required")
        self._descriptors: Dict[str, ProviderDescriptor] = dict(descriptors)
        self._client_factory = client_factory
        self._http_timeout = http_timeout
        self._clients: Dict[str, ProviderClient] = {}
        for pid, desc in self._descriptors.items():
            if clients and pid in clients:
                self._clients[pid] = clients[pid]
            else:
                self._clients[pid] = client_factory(desc, http_timeout)
        self._active = active if active in self._descriptors else next(iter(self._descriptors))
        self._context = ConversationContext(capacity)
        self._lock = threading.Lock()

    # ---- 状态 ----

    @property
    def active_id(self) -> str:
        return self._active

    @property
    def active_descriptor(self) -> ProviderDescriptor:
        return self._descriptors[self._active]

    @property
    def descriptors(self) -> Mapping[str, ProviderDescriptor]:
        return dict(self._descriptors)

    @property
    def context(self) -> ConversationContext:
        return self._context

    def history(self) -> Tuple[Turn, ...]:
        return self._context.snapshot()

    def set_active(self, provider_id: str) -> bool:
        """切换激活的 Provider；未知 id 返回 False 且不改变状态。"""

        if provider_id not in self._descriptors:
            return False
        self._active = provider_id
        return True

    def available_providers(self) -> List[str]:
        """已配置 API Key 的 Provider 列表。"""

        return [pid for pid, desc in self._descriptors.items() if desc.has_credential]

    def update_descriptor(self, descriptor: ProviderDescriptor) -> None:
        """替换某个 Provider 的描述符并重建其客户端（例如保存了新的 API Key）。"""

        with self._lock:
            self._descriptors[descriptor.id] = descriptor
            self._clients[descriptor.id] = self._client_factory(descriptor, self._http_timeout)

    def reset_history(self, turns: Iterable[Turn] = ()) -> None:
        """切换/删除会话时清空上下文，可选地用会话中的消息重新填充。"""

        with self._lock:
            self._context.reset(turns)

    # ---- 调用 ----

    def dispatch(self, user_message: str) -> str:
        """把一条用户消息发给当前 Provider 并返回回复文本。

        失败时已追加的 user Turn 保留在上下文中，但不会追加 assistant Turn；
        ProviderError / ConfigurationError 原样向上抛出，由调用方决定如何展示。
        """

        with self._lock:
            provider_id = self._active
            client = self._clients[provider_id]
            log_ctx: Dict[str, Any] = {
                "trace_id": f"tr-{uuid4().hex}",
                "provider": provider_id,
            }
            start_time = time.time()
            self._context.append("user", user_message)
            turns = self._context.snapshot()
            self._log(logging.INFO, "Calling provider", log_ctx, turn_count=len(turns))
            try:
                reply = client.send_chat(turns)
            except BusinessError as exc:
                self._log(
                    logging.WARNING,
                    "Provider call failed",
                    log_ctx,
                    code=exc.code,
                    error=exc.message,
                )
                raise
            self._context.append("assistant", reply)
            self._log(
                logging.INFO,
                "Provider call completed",
                log_ctx,
                elapsed_seconds=round(time.time() - start_time, 2),
                context_size=len(self._context),
            )
            return reply

    def test_active(self) -> ProbeResult:
        """用固定探测消息走一次真实 dispatch，并把结果转成 ProbeResult。

        注意：探测消息与回复会像普通对话一样进入上下文。
        """

        provider_id = self._active
        try:
            reply = self.dispatch(PROBE_MESSAGE)
        except Exception as exc:  # noqa: BLE001 - 探测结果需要吞掉所有异常
            message = exc.message if isinstance(exc, BusinessError) else str(exc)
            return ProbeResult(success=False, provider=provider_id, error=message)
        return ProbeResult(success=True, provider=provider_id, response=reply)

    def translate(self, text: str, source: str = "auto", target: str = "English") -> str:
        """使用当前 Provider 翻译文本，不读取也不修改对话上下文。"""

        client = self._clients[self._active]
        self._log(
            logging.INFO,
            "Calling provider for translation",
            {"provider": self._active},
            source=source,
            target=target,
        )
        return client.send_translate(text, source, target)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
