"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层或 UI 层做统一捕获与用户提示。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """配置缺失或非法（如 API Key 为空），在任何网络调用之前抛出。"""


class ProviderError(BusinessError):
    """Provider 调用失败：非 2xx 响应或无法解析的响应体。

    status 为 None 表示请求根本没有拿到 HTTP 响应（见 NetworkError）。
    """

    def __init__(self, message: str, status: Optional[int] = None, code: str = "PROVIDER_ERROR", **extra):
        self.status = status
        super().__init__(code=code, message=message, http_status=status or 502, **extra)


class NetworkError(ProviderError):
    """网络层错误，例如 DNS 失败、连接被拒绝等。"""

    def __init__(self, message: str, **extra):
        super().__init__(message, status=None, code="NETWORK_ERROR", **extra)


class RenderError(BusinessError):
    """Markdown 转换或 HTML 清洗失败，由渲染层就地降级为纯文本。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="RENDER_ERROR", message=message, http_status=500, **extra)
