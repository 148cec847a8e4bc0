"""模型输出渲染层。

- markdown_html: Markdown → HTML（含可选的 Pygments 代码高亮）。
- sanitizer: 白名单 HTML 清洗器。
- renderer: 组合两者并在失败时降级为纯文本。
"""

from chat_core.rendering.renderer import MessageRenderer
from chat_core.rendering.sanitizer import DEFAULT_POLICY, MarkupSanitizer, SanitizePolicy, sanitize_html

__all__ = ["DEFAULT_POLICY", "MarkupSanitizer", "MessageRenderer", "SanitizePolicy", "sanitize_html"]
