"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话控制器或 UI 层做统一捕获与用户提示。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、detail 等）。
    """

    default_code = "BUSINESS_ERROR"
    default_message = "Unexpected error."

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, http_status: int = 400, **extra):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.http_status = http_status
        self.extra = extra
        super().__init__(self.message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""

    default_code = "NETWORK_ERROR"
    default_message = "Network connection failed."


class TransportError(NetworkError):
    """流式/非流式请求过程中连接中断、超时等传输层失败。

    不在本层重试，部分输出由会话控制器保留。
    """


class ApiError(BusinessError):
    """第三方 API 返回非 2xx 错误时抛出。"""

    default_code = "API_ERROR"


class InvalidResponseError(ApiError):
    """状态码不在 [200, 300) 区间，或请求端点本身不合法。"""

    default_code = "INVALID_RESPONSE"
    default_message = "Server returned an invalid response."


class RateLimitError(InvalidResponseError):
    """Provider 限流错误（HTTP 429），重试/退避由调用方决定。"""

    default_code = "RATE_LIMIT"


class DecodeError(BusinessError):
    """非流式响应体不是合法 JSON，或不符合预期的结构。"""

    default_code = "DECODE_ERROR"
    default_message = "Could not decode the provider response."


class StreamCancelledError(BusinessError):
    """用户主动停止生成。"""

    default_code = "STREAM_CANCELLED"
    default_message = "Generation was stopped."


class ValidationError(BusinessError):
    """参数或配置校验失败。"""

    default_code = "VALIDATION_ERROR"


class MissingCredentialError(ValidationError):
    """所选 Provider 没有可用的 API Key。"""

    default_code = "MISSING_API_KEY"
    default_message = "Missing API key configuration."
