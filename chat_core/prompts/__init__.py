"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本：
- chat_system: 普通对话使用的固定系统指令。
- translate_system: 翻译使用的模板，包含 {target} 与 {source} 占位符。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_system_prompt(name: str = "chat_system", locale: str = "en") -> str:
    """根据提示词名称和语言加载系统提示词文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def build_translate_prompt(source: str = "auto", target: str = "English", locale: str = "en") -> str:
    template = load_system_prompt("translate_system", locale)
    return template.format(source=source or "auto", target=target or "English")
