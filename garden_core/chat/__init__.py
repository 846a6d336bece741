"""园艺聊天机器人：会话编排与文本请求构造。"""

from garden_core.chat.orchestrator import CHAT_APOLOGY, ChatOrchestrator, ChatState, SendResult

__all__ = ["CHAT_APOLOGY", "ChatOrchestrator", "ChatState", "SendResult"]
