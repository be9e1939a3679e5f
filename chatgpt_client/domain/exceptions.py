"""统一业务异常模型。

所有对外抛出的错误都继承自 BusinessError，调用方可以按类型
（AuthenticationError / TransportError / ...）或按 code 字段统一分支处理。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "AUTH_FAILED"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 partial_text、line 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class AuthenticationError(BusinessError):
    """session token 换取 access token 失败（服务端返回 error 或请求本身失败）。"""


class TransportError(BusinessError):
    """会话流式请求无法建立，或在收到 [DONE] 之前连接中断/超时。"""


class ApiError(TransportError):
    """对话接口返回非 2xx/429 状态码。"""


class RateLimitError(TransportError):
    """对话接口限流，重试/退避由调用方负责。"""


class FrameParseError(BusinessError):
    """单个 data: 帧无法解析。不会被抛出，只交给诊断回调和日志。"""


class ConcurrencyMisuseError(BusinessError):
    """同一个 ConversationSession 上出现了重叠调用。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
