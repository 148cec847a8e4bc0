"""会话上下文窗口与会话存储协议。

ConversationContext 是与 Provider 无关的滚动窗口：只保留最近 capacity 条 Turn，
超出时从最旧的一条开始淘汰（FIFO）。capacity 为 0 时退化为无状态的单轮对话。
"""

from collections import deque
from typing import Deque, Iterable, List, Protocol, Tuple

from chat_core.domain.models import ChatSession, Role, SessionMessage, Turn

DEFAULT_CAPACITY = 10


class ConversationContext:
    """有界的 Turn 序列，只能通过 append/clear/reset 修改。"""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._turns: Deque[Turn] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, role: Role, content: str) -> Turn:
        """追加一条 Turn，超出容量时淘汰最旧的记录。"""

        turn = Turn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def snapshot(self) -> Tuple[Turn, ...]:
        """返回当前窗口的只读副本。"""

        return tuple(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def reset(self, turns: Iterable[Turn] = ()) -> None:
        """清空后按顺序重新填充（同样受容量约束）。"""

        self._turns.clear()
        for turn in turns:
            self.append(turn.role, turn.content)

    def __len__(self) -> int:
        return len(self._turns)


class ChatStore(Protocol):
    def create_session(self, title: str = ...) -> ChatSession:
        ...

    def get_session(self, session_id: str) -> ChatSession:
        ...

    def list_sessions(self) -> List[ChatSession]:
        ...

    def add_message(self, session_id: str, message: SessionMessage) -> None:
        ...

    def update_title(self, session_id: str, title: str) -> None:
        ...

    def clear_messages(self, session_id: str) -> None:
        ...

    def delete_session(self, session_id: str) -> None:
        ...

    def clear_all(self) -> None:
        ...
