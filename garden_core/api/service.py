"""对外 API 服务模块。

提供简化的异步函数接口供上层应用（UI、脚本）调用，
默认实例按模块级 settings 懒加载创建。

聊天的 single-flight 以用户为单位：每个 user_id 在发送期间持有一个独立的
ChatOrchestrator，发送结束即关闭并移除，不同用户之间互不阻塞。
"""

from typing import Any, Dict, Optional

from garden_core.chat.orchestrator import ChatOrchestrator
from garden_core.config.settings import InferenceConfig, settings
from garden_core.domain.conversation import ConversationIdentity, ConversationStore
from garden_core.infrastructure.logging.logger import logger
from garden_core.infrastructure.retry import BackoffRetryExecutor
from garden_core.infrastructure.storage.json_store import JsonConversationStore
from garden_core.providers import create_provider
from garden_core.providers.base import InferenceClient
from garden_core.scan.orchestrator import ScanOrchestrator
from garden_core.scan.request_builder import ImageSource


_config: Optional[InferenceConfig] = None
_store: Optional[ConversationStore] = None
_client: Optional[InferenceClient] = None
_scanner: Optional[ScanOrchestrator] = None
_active_chats: Dict[str, ChatOrchestrator] = {}


def get_default_config() -> InferenceConfig:
    global _config
    if _config is None:
        _config = InferenceConfig.from_settings(settings)
    return _config


def get_default_store() -> ConversationStore:
    global _store
    if _store is None:
        _store = JsonConversationStore(root=settings.storage_root, history_window=settings.history_window)
    return _store


def get_default_client() -> InferenceClient:
    global _client
    if _client is None:
        _client = create_provider(get_default_config())
    return _client


def _new_retry() -> BackoffRetryExecutor:
    return BackoffRetryExecutor(max_attempts=settings.max_attempts)


def get_default_scanner() -> ScanOrchestrator:
    """获取默认的扫描编排器实例（单例）。"""
    global _scanner
    if _scanner is None:
        _scanner = ScanOrchestrator(
            config=get_default_config(),
            client=get_default_client(),
            retry=_new_retry(),
        )
    return _scanner


def _identity(user_id: str) -> ConversationIdentity:
    return ConversationIdentity(namespace=get_default_config().namespace, user_id=user_id)


def active_chat_count() -> int:
    """当前仍在发送中的用户数。"""
    return len(_active_chats)


async def run_scan(image: ImageSource, mime_type: Optional[str] = None) -> Dict[str, Any]:
    """扫描一张植物图片。

    Returns:
        包含健康度、病害、补救措施与展示分档的字典

    Raises:
        AnalysisFailed: 任何失败，message 为面向用户的通用提示
    """
    result = await get_default_scanner().scan(image, mime_type)
    return {
        "health_percentage": result.health_percentage,
        "predicted_disease": result.predicted_disease,
        "home_remedies": result.remedies,
        "is_healthy": result.is_healthy,
        "health_band": result.health_band,
        "remedies_heading": result.remedies_heading,
    }


async def send_chat_message(user_id: str, text: str) -> Dict[str, Any]:
    """发送一条聊天消息并等待回复写入会话日志。

    Args:
        user_id: 身份提供方给出的用户/会话 ID
        text: 用户输入

    Returns:
        包含会话路径、两条消息 ID 与是否失败的字典

    Raises:
        SendRejectedError: 空白输入或该用户已有发送在进行中
        StoreWriteError: user 消息写入失败
    """
    identity = _identity(user_id)
    chat = _active_chats.get(user_id)
    owner = chat is None
    if owner:
        chat = ChatOrchestrator(
            config=get_default_config(),
            store=get_default_store(),
            client=get_default_client(),
            retry=_new_retry(),
        )
        _active_chats[user_id] = chat
    try:
        outcome = await chat.send(identity, text)
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "conversation": identity.path,
            "error": str(e),
        }})
        raise
    finally:
        if owner:
            _active_chats.pop(user_id, None)
            chat.close()
    return {
        "conversation": identity.path,
        "user_turn_id": outcome.user_turn_id,
        "reply_turn_id": outcome.reply_turn_id,
        "failed": outcome.failed,
    }


def get_conversation_messages(user_id: str) -> list[Dict[str, Any]]:
    """获取会话最近窗口内的消息（已过滤空文本）。

    Args:
        user_id: 用户/会话 ID

    Returns:
        按时间升序排列的消息列表
    """
    sub = get_default_store().subscribe(_identity(user_id))
    try:
        turns = sub.latest
    finally:
        sub.unsubscribe()
    return [
        {
            "id": t.id,
            "role": t.role,
            "text": t.text,
            "created_at": t.created_at.isoformat(),
        }
        for t in turns
    ]
