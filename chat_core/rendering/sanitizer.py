"""白名单 HTML 清洗器。

输入是 Markdown 渲染器对不可信模型输出生成的 HTML，输出只包含白名单中的标签与属性：

1. 使用 html5lib 按 HTML5 容错规则解析片段（畸形输入不会抛异常）。
2. 把解析树转换为 NodeArena（节点数组 + 父子下标），与具体解析器解耦。
3. 深度优先遍历：文本节点原样复制；白名单标签新建元素，只复制通过校验的属性；
   不在白名单中的标签整体替换为其文本内容（标签丢弃，文字保留并转义）。
4. 重新序列化为字符串。
5. 对输出重复上述过程直到结果不再变化（最多 MAX_PASSES 次），保证清洗幂等。

这是白名单而不是黑名单：script、iframe、on* 事件属性、javascript: 链接等
之所以被排除，是因为它们根本不在策略表中，而不是被模式匹配拦截。
"""

from dataclasses import dataclass, field
from html import escape
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Literal, Mapping, Optional

import html5lib

from chat_core.domain.exceptions import RenderError


ROOT = 0

# 没有结束标签的空元素
VOID_TAGS = frozenset({"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"})

# 文本不能直接作为其子节点的表格结构元素，重新解析时会被移到表格之前
TABLE_CONTEXT_TAGS = frozenset({"table", "thead", "tbody", "tfoot", "tr"})

# 解析时会吞掉紧跟在开始标签后的第一个换行
LEADING_NEWLINE_TAGS = frozenset({"pre", "textarea", "listing"})

# HTML 解析器只认这几个空白字符，\xa0 等 Unicode 空白算作普通文本
HTML_WHITESPACE = " \t\n\f\r"

# 清洗结果重新解析后仍可能被 HTML5 树构建规则改写（例如表格外提的节点嵌套在同名元素中），
# 因此反复清洗直到输出不再变化
MAX_PASSES = 8


AttributeValidator = Callable[[str], bool]


def _starts_with(*prefixes: str) -> AttributeValidator:
    def check(value: str) -> bool:
        return value.startswith(prefixes)

    return check


def _always(value: str) -> bool:
    return True


@dataclass(frozen=True)
class SanitizePolicy:
    """清洗策略：标签 → 允许的属性名集合，属性名 → 属性值校验函数。

    属性只有同时满足“在该标签的允许集合中”和“值校验通过”才会被保留。
    """

    tags: Mapping[str, FrozenSet[str]]
    validators: Mapping[str, AttributeValidator]

    def allows_tag(self, tag: str) -> bool:
        return tag in self.tags

    def admits(self, tag: str, name: str, value: str) -> bool:
        if name not in self.tags.get(tag, frozenset()):
            return False
        validator = self.validators.get(name)
        return validator is not None and validator(value)


def _policy(tags: Dict[str, FrozenSet[str]], validators: Dict[str, AttributeValidator]) -> SanitizePolicy:
    return SanitizePolicy(tags=MappingProxyType(tags), validators=MappingProxyType(validators))


_BARE_TAGS = (
    "p", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "code", "pre",
    "strong", "b", "em", "i", "hr", "br",
    "table", "thead", "tbody", "tr", "th", "td",
)

DEFAULT_POLICY = _policy(
    {
        **{tag: frozenset() for tag in _BARE_TAGS},
        "a": frozenset({"href"}),
        "img": frozenset({"src", "alt"}),
        "span": frozenset({"class"}),
    },
    {
        "href": _starts_with("http://", "https://", "#"),
        "src": _starts_with("http://", "https://", "data:"),
        "alt": _always,
        "class": _always,
    },
)


@dataclass
class Node:
    kind: Literal["root", "element", "text"]
    tag: str = ""
    text: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)


class NodeArena:
    """以数组保存的 HTML 树，下标 0 是片段根节点。"""

    def __init__(self) -> None:
        self.nodes: List[Node] = [Node(kind="root")]

    def add_element(self, parent: int, tag: str, attrs: Optional[Dict[str, str]] = None) -> int:
        return self._attach(parent, Node(kind="element", tag=tag, attrs=dict(attrs or {})))

    def add_text(self, parent: int, text: str, before: Optional[int] = None) -> int:
        return self._attach(parent, Node(kind="text", text=text), before)

    def _attach(self, parent: int, node: Node, before: Optional[int] = None) -> int:
        idx = len(self.nodes)
        node.parent = parent
        self.nodes.append(node)
        siblings = self.nodes[parent].children
        if before is None:
            siblings.append(idx)
        else:
            siblings.insert(siblings.index(before), idx)
        return idx

    def text_content(self, idx: int) -> str:
        """按文档顺序拼接某个节点下的全部文本。"""

        parts: List[str] = []
        stack = [idx]
        while stack:
            node = self.nodes[stack.pop()]
            if node.kind == "text":
                parts.append(node.text)
            else:
                stack.extend(reversed(node.children))
        return "".join(parts)

    def serialize(self) -> str:
        parts: List[str] = []
        stack = [(child, False) for child in reversed(self.nodes[ROOT].children)]
        while stack:
            idx, closing = stack.pop()
            node = self.nodes[idx]
            if closing:
                parts.append(f"</{node.tag}>")
                continue
            if node.kind == "text":
                parts.append(escape(node.text, quote=False))
                continue
            attrs = "".join(f' {name}="{escape(value, quote=True)}"' for name, value in node.attrs.items())
            parts.append(f"<{node.tag}{attrs}>")
            if node.tag in VOID_TAGS:
                continue
            if node.tag in LEADING_NEWLINE_TAGS and node.children:
                first = self.nodes[node.children[0]]
                if first.kind == "text" and first.text.startswith("\n"):
                    parts.append("\n")
            stack.append((idx, True))
            stack.extend((child, False) for child in reversed(node.children))
        return "".join(parts)

    @classmethod
    def from_html(cls, raw: str) -> "NodeArena":
        """用 html5lib 解析 HTML 片段并转换为 NodeArena。注释被丢弃。"""

        fragment = html5lib.parseFragment(raw, treebuilder="etree", namespaceHTMLElements=False)
        arena = cls()
        stack = [(ROOT, fragment)]
        while stack:
            parent, elem = stack.pop()
            if elem.text:
                arena.add_text(parent, elem.text)
            for child in elem:
                # 注释/处理指令的 tag 不是字符串
                if isinstance(child.tag, str):
                    idx = arena.add_element(parent, child.tag.lower(), {str(k).lower(): v for k, v in child.attrib.items()})
                    stack.append((idx, child))
                if child.tail:
                    arena.add_text(parent, child.tail)
        return arena


class MarkupSanitizer:
    """按 SanitizePolicy 清洗 HTML 字符串。"""

    def __init__(self, policy: SanitizePolicy = DEFAULT_POLICY):
        self._policy = policy

    @property
    def policy(self) -> SanitizePolicy:
        return self._policy

    def sanitize(self, raw_html: str) -> str:
        if not raw_html:
            return ""
        try:
            cleaned = self._sanitize_once(raw_html)
            for _ in range(MAX_PASSES):
                again = self._sanitize_once(cleaned)
                if again == cleaned:
                    break
                cleaned = again
            return cleaned
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"sanitize failed: {exc}") from exc

    def _sanitize_once(self, raw_html: str) -> str:
        return self.sanitize_arena(NodeArena.from_html(raw_html)).serialize()

    def sanitize_arena(self, source: NodeArena) -> NodeArena:
        out = NodeArena()
        stack = [(ROOT, ROOT)]
        while stack:
            src_idx, dst_idx = stack.pop()
            for child_idx in source.nodes[src_idx].children:
                node = source.nodes[child_idx]
                if node.kind == "text":
                    self._emit_text(out, dst_idx, node.text)
                    continue
                if not self._policy.allows_tag(node.tag):
                    text = source.text_content(child_idx)
                    if text:
                        self._emit_text(out, dst_idx, text)
                    continue
                attrs = {
                    name: value
                    for name, value in node.attrs.items()
                    if self._policy.admits(node.tag, name, value)
                }
                new_idx = out.add_element(dst_idx, node.tag, attrs)
                stack.append((child_idx, new_idx))
        return out

    @staticmethod
    def _emit_text(out: NodeArena, parent: int, text: str) -> None:
        """追加文本；非空白文本落在表格结构中时移到所属表格之前。"""

        if text.strip(HTML_WHITESPACE) and out.nodes[parent].tag in TABLE_CONTEXT_TAGS:
            table = parent
            while out.nodes[table].tag != "table" and out.nodes[table].parent is not None:
                table = out.nodes[table].parent
            host = out.nodes[table].parent
            if out.nodes[table].tag == "table" and host is not None:
                out.add_text(host, text, before=table)
                return
        out.add_text(parent, text)


_default_sanitizer = MarkupSanitizer()


def sanitize_html(raw_html: str) -> str:
    """使用默认策略清洗 HTML。"""

    return _default_sanitizer.sanitize(raw_html)
