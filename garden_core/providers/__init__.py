"""推理 Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (gemini_client)。
"""

from typing import Callable, Dict, Optional

from garden_core.config.settings import InferenceConfig
from garden_core.providers.base import InferenceClient
from garden_core.providers.gemini_client import GeminiClient
from garden_core.providers.registry import get_provider_config


_CLIENT_FACTORIES: Dict[str, Callable[[InferenceConfig], InferenceClient]] = {
    "gemini": GeminiClient,
}


def create_provider(config: InferenceConfig, name: Optional[str] = None) -> InferenceClient:
    """根据名称创建 Provider 实例，名称经 registry 校验，不区分大小写。"""

    provider_cfg = get_provider_config(name or "gemini")
    return _CLIENT_FACTORIES[provider_cfg.name](config)
