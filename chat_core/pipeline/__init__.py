"""对话管线：Provider 路由与响应渲染。"""

from chat_core.pipeline.response import ChatResponsePipeline
from chat_core.pipeline.router import PROBE_MESSAGE, ProviderRouter

__all__ = ["ChatResponsePipeline", "PROBE_MESSAGE", "ProviderRouter"]
