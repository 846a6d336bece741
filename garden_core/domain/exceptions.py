"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在 facade 层或 UI 层做统一捕获与用户提示。

分类：
- TransientTransportError 及其子类：网络/非 2xx，可重试，由 BackoffRetryExecutor 吸收。
- EmptyResponseError / SchemaViolationError：模型输出不符合约定，结构性错误，不重试。
- EncodingError：输入在发起任何网络调用之前就无法编码。
- StoreWriteError / StoreReadError：会话存储读写失败。
- AnalysisFailed：ScanOrchestrator 对外暴露的唯一失败类型。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransientTransportError(BusinessError):
    """可重试的传输层错误基类。"""


class NetworkError(TransientTransportError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(TransientTransportError):
    """推理端点返回非 2xx（429 除外）或 2xx 但响应体不是 JSON。"""


class RateLimitError(TransientTransportError):
    """推理端点限流 (HTTP 429)。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class SendRejectedError(ValidationError):
    """聊天发送被拒绝：空白输入或已有发送在进行中。"""


class EmptyResponseError(BusinessError):
    """响应信封中没有第一个候选的文本内容。"""


class SchemaViolationError(BusinessError):
    """模型文本无法解析为约定的结构，或字段类型不符。"""


class EncodingError(BusinessError):
    """图片输入为空或无法读取/编码。"""


class StoreWriteError(BusinessError):
    """会话存储写入失败。"""


class StoreReadError(BusinessError):
    """会话存储读取/订阅通道失败。"""


class AnalysisFailed(BusinessError):
    """一次扫描失败。

    message 是面向用户的通用提示，reason 保存内部真实异常（只记录日志，不展示）。
    """

    def __init__(self, message: str, reason: BaseException, **extra):
        super().__init__(code="ANALYSIS_FAILED", message=message, http_status=502, **extra)
        self.reason = reason
