"""统一的对话与展示数据模型。

本模块定义了在 Provider、上下文窗口、渲染层和持久化层之间共享的标准结构：

- Turn: 发给 Provider 的一条角色消息（system/user/assistant），创建后不可变。
- SessionMessage / ChatSession: 持久化在本地的会话记录。
- DisplayMessage: 渲染完成、可直接交给 UI 展示的消息。
- RespondResult / ProbeResult: 管线与连通性测试的返回结果。

所有 Provider 适配器只依赖 Turn，不感知会话与渲染细节。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional, Tuple

from chat_core.domain.exceptions import BusinessError


# 发给 Provider 的角色词表（各厂商在适配器内自行映射）
Role = Literal["system", "user", "assistant"]

# 会话记录中的发送方，"ai" 对应 Provider 的 assistant 角色
Sender = Literal["user", "ai", "system"]

TITLE_LIMIT = 30
PREVIEW_LIMIT = 50
DEFAULT_TITLE = "New Chat"


@dataclass(frozen=True)
class Turn:
    """一条角色消息，顺序即对话顺序。"""

    role: Role
    content: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionMessage:
    """会话中的一条持久化消息。

    is_error 标记 Provider 调用失败时展示给用户的错误回复，它从未与模型交换过。
    """

    content: str
    sender: Sender
    timestamp: datetime = field(default_factory=_utcnow)
    is_error: bool = False

    def to_turn(self) -> Optional[Turn]:
        """转换为 Provider 上下文中的 Turn，system 提示与错误回复不进入上下文。"""

        if self.is_error:
            return None
        if self.sender == "user":
            return Turn(role="user", content=self.content)
        if self.sender == "ai":
            return Turn(role="assistant", content=self.content)
        return None


@dataclass
class ChatSession:
    """本地持久化的一个会话。

    - id: 会话唯一标识。
    - title: 会话标题，首条用户消息决定。
    - messages: 按时间顺序排列的消息。
    """

    id: str
    title: str = DEFAULT_TITLE
    messages: List[SessionMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    last_updated: datetime = field(default_factory=_utcnow)

    def add_message(self, content: str, sender: Sender, is_error: bool = False) -> SessionMessage:
        record = SessionMessage(content=content, sender=sender, is_error=is_error)
        self.messages.append(record)
        self.last_updated = record.timestamp
        return record


@dataclass
class DisplayMessage:
    """渲染后的消息。

    is_html 为 True 时 content 是经过白名单清洗的 HTML；
    为 False 时 content 是纯文本，UI 不得把它当作标记解释。
    """

    sender: Sender
    content: str
    is_html: bool = False


@dataclass
class RespondResult:
    """ChatResponsePipeline.respond 的返回值。"""

    display: List[DisplayMessage]
    context: Tuple[Turn, ...]
    records: List[SessionMessage] = field(default_factory=list)
    ok: bool = True
    error: Optional[BusinessError] = None


@dataclass
class ProbeResult:
    """连通性测试结果，测试本身从不抛出异常。"""

    success: bool
    provider: str
    response: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ChatSummary:
    """会话列表中的一项。"""

    id: str
    title: str
    preview: str
    active: bool = False


def truncate(text: str, limit: int) -> str:
    """按字符数截断，被截断时追加省略号。"""

    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def derive_title(first_message: str) -> str:
    return truncate(first_message, TITLE_LIMIT)
