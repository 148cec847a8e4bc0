"""领域层模型与协议。

包含：
- models: Turn / SessionMessage / ChatSession / DisplayMessage 等统一模型。
- conversation: 有界上下文窗口 ConversationContext 及 ChatStore 抽象。
- exceptions: 业务异常类型定义。
"""
