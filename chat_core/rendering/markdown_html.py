"""Markdown → HTML 转换。

使用 Python-Markdown 渲染模型输出：
- fenced_code / tables / sane_lists: 接近 GFM 的语法支持。
- nl2br: 单个换行即换行（breaks）。

带语言标记的代码块会尽力用 Pygments 高亮（只输出 <span class=...>，不包裹额外元素），
语言未知或高亮失败时保留未高亮的代码文本。原始 HTML 会原样透传，安全性由 sanitizer 负责。
"""

import re
from html import unescape
from typing import Optional

import markdown
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from chat_core.domain.exceptions import RenderError
from chat_core.infrastructure.logging.logger import logger


MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "nl2br", "sane_lists"]

_CODE_BLOCK_RE = re.compile(
    r'<pre><code class="language-([^"]+)">(.*?)</code></pre>',
    re.DOTALL,
)

_formatter = HtmlFormatter(nowrap=True)


def highlight_code(code: str, language: str) -> Optional[str]:
    """高亮一段代码，未知语言返回 None。"""

    try:
        lexer = get_lexer_by_name(language)
    except ClassNotFound:
        return None
    return highlight(code, lexer, _formatter)


def _highlight_block(match: "re.Match[str]") -> str:
    language = unescape(match.group(1))
    try:
        highlighted = highlight_code(unescape(match.group(2)), language)
    except Exception as exc:
        logger.warning(
            "Syntax highlighting failed",
            extra={"extra": {"language": language, "error": str(exc)}},
        )
        return match.group(0)
    if highlighted is None:
        return match.group(0)
    return f'<pre><code class="language-{match.group(1)}">{highlighted}</code></pre>'


def markdown_to_html(text: str, highlight_blocks: bool = True) -> str:
    """把 Markdown 文本渲染为（未清洗的）HTML。"""

    try:
        raw = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
        if highlight_blocks:
            raw = _CODE_BLOCK_RE.sub(_highlight_block, raw)
        return raw
    except Exception as exc:
        raise RenderError(f"markdown conversion failed: {exc}") from exc
