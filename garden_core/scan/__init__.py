"""植物健康扫描：多模态请求构造、响应解码与编排。"""

from garden_core.scan.decoder import StructuredResponseDecoder
from garden_core.scan.orchestrator import SCAN_FAILED_MESSAGE, ScanOrchestrator
from garden_core.scan.request_builder import ANALYSIS_RESPONSE_SCHEMA, MultimodalRequestBuilder

__all__ = [
    "ANALYSIS_RESPONSE_SCHEMA",
    "MultimodalRequestBuilder",
    "SCAN_FAILED_MESSAGE",
    "ScanOrchestrator",
    "StructuredResponseDecoder",
]
