"""Chat Core 顶层包。

该包提供多 Provider 桌面聊天客户端的核心实现，
包括配置加载、领域模型、Provider 适配、上下文管理、
Markdown 渲染与白名单 HTML 清洗、以及本地会话持久化等能力。
"""

from chat_core.api.service import ChatService
from chat_core.pipeline import ChatResponsePipeline, ProviderRouter

__all__ = ["ChatResponsePipeline", "ChatService", "ProviderRouter"]
