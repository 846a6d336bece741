"""Gemini generateContent Provider 适配器。

- URL: {endpoint_base_url}/models/{provider_model}:generateContent?key=<api_key>
- 请求体: GenerateRequest.to_payload() 产生的 JSON。

只要状态码是 2xx 且响应体是 JSON 即视为成功，原样返回信封；
连接错误、超时、非 2xx 均转换为 TransientTransportError 的子类，由重试层处理。
"""

import json
from typing import Any, Dict

import httpx

from garden_core.config.settings import InferenceConfig
from garden_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from garden_core.domain.models import GenerateRequest
from garden_core.providers.registry import GEMINI_CONFIG


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, config: InferenceConfig):
        self._config = config

    def endpoint_url(self, model: str) -> str:
        model_cfg = GEMINI_CONFIG.resolve(model)
        base = (self._config.endpoint_base_url or GEMINI_CONFIG.base_url).rstrip("/")
        return f"{base}/models/{model_cfg.provider_model}:generateContent"

    async def generate(self, req: GenerateRequest, model: str) -> Dict[str, Any]:
        if not self._config.api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        url = self.endpoint_url(model)
        payload = req.to_payload()
        try:
            async with httpx.AsyncClient(timeout=self._config.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    url,
                    params={"key": self._config.api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e)) from e
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if not 200 <= resp.status_code < 300:
            raise ApiError(
                code="API_ERROR",
                message=f"API call failed with status: {resp.status_code}",
                http_status=resp.status_code,
                body=resp.text,
            )
        try:
            data = resp.json()
        except json.JSONDecodeError as e:
            raise ApiError(code="API_ERROR", message="response body is not JSON", http_status=resp.status_code) from e
        if not isinstance(data, dict):
            raise ApiError(code="API_ERROR", message="response body is not a JSON object", http_status=resp.status_code)
        return data
