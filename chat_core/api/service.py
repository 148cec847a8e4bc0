"""对外 API 服务模块。

ChatService 把配置、Provider 路由、响应管线和本地会话存储组装在一起，
为上层 UI 提供“新建/切换/删除会话、发送消息、测试连接、翻译、保存 Key”等操作。
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from chat_core.config import env_utils
from chat_core.config.settings import settings
from chat_core.domain.conversation import ChatStore
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import (
    PREVIEW_LIMIT,
    ChatSession,
    ChatSummary,
    DisplayMessage,
    ProbeResult,
    RespondResult,
    Turn,
    derive_title,
    truncate,
)
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonChatStore
from chat_core.pipeline.response import ChatResponsePipeline
from chat_core.pipeline.router import ProviderRouter
from chat_core.providers.registry import descriptors_from_settings, looks_like_api_key


class ChatService:
    def __init__(
        self,
        store: Optional[ChatStore] = None,
        pipeline: Optional[ChatResponsePipeline] = None,
        cfg=settings,
        env_file: Optional[Path] = None,
    ):
        self._settings = cfg
        self._store = store or JsonChatStore(root=cfg.storage_root)
        if pipeline is None:
            router = ProviderRouter(
                descriptors_from_settings(cfg),
                active=cfg.default_provider,
                capacity=cfg.max_context_turns,
                http_timeout=cfg.http_timeout,
            )
            pipeline = ChatResponsePipeline(router)
        self._pipeline = pipeline
        self._router = pipeline.router
        self._env_file = env_file
        self._current_id: Optional[str] = None

    @property
    def current_chat_id(self) -> Optional[str]:
        return self._current_id

    @property
    def active_provider(self) -> str:
        return self._router.active_id

    # ---- 会话管理 ----

    def new_chat(self) -> ChatSession:
        session = self._store.create_session()
        self._current_id = session.id
        self._router.reset_history()
        return session

    def load_chat(self, session_id: str) -> Tuple[ChatSession, List[DisplayMessage]]:
        """切换到指定会话：用其最近的消息重新填充上下文，并返回渲染后的历史。"""

        session = self._store.get_session(session_id)
        self._current_id = session.id
        turns: List[Turn] = [t for t in (m.to_turn() for m in session.messages) if t is not None]
        self._router.reset_history(turns)
        return session, self._pipeline.render_history(session)

    def delete_chat(self, session_id: str) -> None:
        self._store.delete_session(session_id)
        if session_id == self._current_id:
            self._current_id = None
            self.new_chat()

    def clear_current_chat(self) -> Optional[DisplayMessage]:
        if not self._current_id:
            return None
        self._store.clear_messages(self._current_id)
        self._router.reset_history()
        return self._pipeline.renderer.render("system", "**Chat cleared!** Start a new conversation.")

    def clear_all_chats(self) -> ChatSession:
        self._store.clear_all()
        self._current_id = None
        return self.new_chat()

    def list_chats(self) -> List[ChatSummary]:
        """会话列表：标题取首条消息前 30 字，预览取第二条消息前 50 字。"""

        summaries: List[ChatSummary] = []
        for session in self._store.list_sessions():
            msgs = session.messages
            title = derive_title(msgs[0].content) if msgs else session.title
            preview = truncate(msgs[1].content, PREVIEW_LIMIT) if len(msgs) > 1 else "No messages yet"
            summaries.append(
                ChatSummary(
                    id=session.id,
                    title=title,
                    preview=preview,
                    active=session.id == self._current_id,
                )
            )
        return summaries

    # ---- 对话 ----

    def send_message(self, text: str) -> Optional[RespondResult]:
        """发送一条消息；空白输入直接忽略。

        会话的第一条消息决定标题（截断到 30 字，超出追加 "..."）。
        """

        message = (text or "").strip()
        if not message:
            return None
        if self._current_id is None:
            self.new_chat()
        session = self._store.get_session(self._current_id)
        is_first = not session.messages

        result = self._pipeline.respond(session, message)
        for record in result.records:
            self._store.add_message(session.id, record)
        if is_first and result.records:
            self._store.update_title(session.id, derive_title(message))
        if result.error is not None:
            logger.error(
                f"Chat failed: {result.error.message}",
                extra={"extra": {
                    "session_id": session.id,
                    "provider": self._router.active_id,
                    "code": result.error.code,
                }},
            )
        return result

    # ---- Provider ----

    def switch_provider(self, provider_id: str) -> Optional[DisplayMessage]:
        """切换 Provider；目标 Provider 未配置 Key 时返回提示消息。"""

        if not self._router.set_active(provider_id):
            return None
        if not self._router.active_descriptor.has_credential:
            return self._pipeline.renderer.render(
                "system",
                f"⚠️ **No API key configured for {provider_id}**\n\nPlease add your API key in Settings.",
            )
        return None

    def test_provider(self, provider_id: Optional[str] = None) -> ProbeResult:
        target = provider_id or self._router.active_id
        if not self._router.set_active(target):
            return ProbeResult(success=False, provider=target, error=f"Unknown provider: {target}")
        return self._router.test_active()

    def available_providers(self) -> List[str]:
        return self._router.available_providers()

    def translate(self, text: str, source: str = "auto", target: str = "English") -> str:
        if not (text or "").strip():
            return ""
        descriptor = self._router.active_descriptor
        if not descriptor.has_credential:
            return f"No API key configured for {descriptor.id}. Add one in Settings."
        try:
            return self._router.translate(text, source, target)
        except BusinessError as e:
            logger.error(
                f"Translation failed: {e.message}",
                extra={"extra": {"provider": descriptor.id, "code": e.code}},
            )
            return f"Translation failed: {e.message}"

    def save_api_keys(self, keys: Mapping[str, Optional[str]]) -> List[str]:
        """保存 API Key 到 .env 并立即生效。

        Returns:
            格式看起来可疑的 Provider 列表（仅作提示，仍会保存）。
        """

        known: Dict[str, Optional[str]] = {
            pid: key for pid, key in keys.items() if pid in self._router.descriptors
        }
        env_utils.update_api_keys(known, self._env_file)
        suspicious: List[str] = []
        for pid, key in known.items():
            descriptor = self._router.descriptors[pid].with_api_key(key)
            self._router.update_descriptor(descriptor)
            if descriptor.has_credential and not looks_like_api_key(pid, key):
                suspicious.append(pid)
        return suspicious
