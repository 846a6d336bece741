"""Provider 抽象接口。

编排器不直接依赖具体厂商的 HTTP 调用，而是依赖此协议：

- 每个厂商实现一个 InferenceClient（如 GeminiClient）。
- 负责：把 GenerateRequest 转成 HTTP 请求，并返回原始响应信封 (dict)。

响应信封的解析（取第一个候选的文本、结构校验）由上层完成，
这样客户端只承担传输层职责，所有传输层失败都表现为 TransientTransportError。
"""

from typing import Any, Dict, Protocol

from garden_core.domain.models import GenerateRequest


class InferenceClient(Protocol):
    """推理端点客户端协议。

    - name: Provider 名称，用于日志。
    - generate(req, model): 执行一次 generateContent 调用，返回原始 JSON 信封。
    """

    name: str

    async def generate(self, req: GenerateRequest, model: str) -> Dict[str, Any]:
        ...
