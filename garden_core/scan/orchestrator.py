"""植物扫描编排：构造请求 -> 带退避的推理调用 -> 解码校验。

任何失败（编码、重试耗尽的网络失败、解码失败）都统一转换成 AnalysisFailed，
对外只暴露通用提示，内部错误写日志。每次 scan 相互独立，结果不落盘。
"""

import logging
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from garden_core.config.settings import InferenceConfig
from garden_core.domain.analysis import AnalysisResult
from garden_core.domain.exceptions import AnalysisFailed
from garden_core.infrastructure.logging.logger import log_event, logger
from garden_core.infrastructure.retry import BackoffRetryExecutor
from garden_core.prompts import load_scan_instruction
from garden_core.providers.base import InferenceClient
from garden_core.scan.decoder import StructuredResponseDecoder
from garden_core.scan.request_builder import (
    ANALYSIS_RESPONSE_SCHEMA,
    ImageSource,
    MultimodalRequestBuilder,
)


SCAN_FAILED_MESSAGE = "Analysis failed. Please try a clearer picture or ask the bot for help."


class ScanOrchestrator:
    def __init__(
        self,
        config: InferenceConfig,
        client: InferenceClient,
        retry: Optional[BackoffRetryExecutor] = None,
        builder: Optional[MultimodalRequestBuilder] = None,
        decoder: Optional[StructuredResponseDecoder] = None,
        instruction: Optional[str] = None,
    ):
        self._config = config
        self._client = client
        self._retry = retry or BackoffRetryExecutor()
        self._builder = builder or MultimodalRequestBuilder()
        self._decoder = decoder or StructuredResponseDecoder()
        self._instruction = instruction or load_scan_instruction()

    async def scan(self, image: ImageSource, mime_type: Optional[str] = None) -> AnalysisResult:
        start_time = time.time()
        log_ctx: Dict[str, Any] = {"scan_id": f"scan-{uuid4().hex}", "provider": self._client.name}
        try:
            req = self._builder.build(image, mime_type, self._instruction, ANALYSIS_RESPONSE_SCHEMA)

            async def generate_content() -> Dict[str, Any]:
                return await self._client.generate(req, self._config.model)

            log_event(logging.INFO, "Calling provider", log_ctx, model=self._config.model)
            envelope = await self._retry.execute(generate_content)
            result = self._decoder.decode(envelope)
        except Exception as e:
            logger.error(
                "Scanning Error: %s",
                e,
                exc_info=True,
                extra={"extra": {**log_ctx, "error": type(e).__name__, "code": getattr(e, "code", None)}},
            )
            raise AnalysisFailed(SCAN_FAILED_MESSAGE, reason=e) from e
        log_event(
            logging.INFO,
            "Completed scan",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            health_percentage=result.health_percentage,
            healthy=result.is_healthy,
        )
        return result
