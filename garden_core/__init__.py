"""Garden Core 顶层包。

该包提供植物健康扫描与园艺聊天机器人的客户端核心实现，
包括配置加载、领域模型、推理 Provider 适配、退避重试、
结构化响应解码、实时会话日志与两类编排器。
"""

from garden_core.chat import ChatOrchestrator
from garden_core.scan import ScanOrchestrator

__all__ = ["ChatOrchestrator", "ScanOrchestrator"]
