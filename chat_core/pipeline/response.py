"""对话响应管线。

respond() 串起整条链路：凭据检查 → ProviderRouter.dispatch → Markdown → 清洗 → 展示，
并把本轮的 user / ai 消息追加到会话记录中。会话的创建、标题和持久化由调用方负责。
"""

from typing import List, Optional

from chat_core.domain.exceptions import BusinessError, ConfigurationError
from chat_core.domain.models import ChatSession, DisplayMessage, RespondResult, SessionMessage
from chat_core.pipeline.router import ProviderRouter
from chat_core.rendering.renderer import MessageRenderer


class ChatResponsePipeline:
    def __init__(self, router: ProviderRouter, renderer: Optional[MessageRenderer] = None):
        self._router = router
        self._renderer = renderer or MessageRenderer()

    @property
    def router(self) -> ProviderRouter:
        return self._router

    @property
    def renderer(self) -> MessageRenderer:
        return self._renderer

    def respond(self, session: ChatSession, user_message: str) -> RespondResult:
        """处理一条用户消息。

        - 当前 Provider 未配置 API Key：返回配置提示，不调用 dispatch，不修改上下文与会话。
        - Provider 调用失败：错误信息作为 ai 消息展示并写入会话，ok=False。
        - 成功：user 消息为纯文本，ai 消息为清洗后的 HTML。
        """

        descriptor = self._router.active_descriptor
        if not descriptor.has_credential:
            error = ConfigurationError(
                code="MISSING_API_KEY",
                message=f"Please configure your {descriptor.id} API key",
                provider=descriptor.id,
            )
            notice = self._renderer.render(
                "system",
                f"⚠️ **{error.message}**\n\nAdd your API key in Settings.",
            )
            return RespondResult(
                display=[notice],
                context=self._router.history(),
                ok=False,
                error=error,
            )

        records: List[SessionMessage] = [session.add_message(user_message, "user")]
        display: List[DisplayMessage] = [self._renderer.render("user", user_message)]
        error: Optional[BusinessError] = None
        try:
            reply = self._router.dispatch(user_message)
        except BusinessError as exc:
            error = exc
            reply = f"Sorry, I encountered an error: {exc.message}"

        records.append(session.add_message(reply, "ai", is_error=error is not None))
        display.append(self._renderer.render("ai", reply))
        return RespondResult(
            display=display,
            context=self._router.history(),
            records=records,
            ok=error is None,
            error=error,
        )

    def render_history(self, session: ChatSession) -> List[DisplayMessage]:
        """重新渲染会话中已保存的全部消息（例如切换会话时）。"""

        return [self._renderer.render(m.sender, m.content) for m in session.messages]
