"""消息渲染：把会话消息转换为可展示的 DisplayMessage。

- user 消息始终作为纯文本返回，从不当作标记解释。
- ai / system 消息：Markdown → HTML → 白名单清洗。
- 渲染任一环节失败（RenderError）时就地降级为纯文本，绝不向调用方抛出：
  显示未格式化的回复总比完全不显示好。
"""

from typing import Optional

from chat_core.domain.exceptions import RenderError
from chat_core.domain.models import DisplayMessage, Sender
from chat_core.infrastructure.logging.logger import logger
from chat_core.rendering.markdown_html import markdown_to_html
from chat_core.rendering.sanitizer import MarkupSanitizer


class MessageRenderer:
    def __init__(self, sanitizer: Optional[MarkupSanitizer] = None, highlight_blocks: bool = True):
        self._sanitizer = sanitizer or MarkupSanitizer()
        self._highlight_blocks = highlight_blocks

    def render(self, sender: Sender, content: str) -> DisplayMessage:
        if sender == "user":
            return DisplayMessage(sender=sender, content=content, is_html=False)
        try:
            raw_html = markdown_to_html(content, highlight_blocks=self._highlight_blocks)
            return DisplayMessage(sender=sender, content=self._sanitizer.sanitize(raw_html), is_html=True)
        except RenderError as exc:
            logger.warning(
                "Markdown rendering failed, falling back to plain text",
                extra={"extra": {"sender": sender, "error": exc.message}},
            )
            return DisplayMessage(sender=sender, content=content, is_html=False)
