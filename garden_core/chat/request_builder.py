"""聊天请求构造：会话历史 + 本次输入 + 系统提示词 -> GenerateRequest。"""

from typing import Iterable

from garden_core.domain.conversation import ChatTurn
from garden_core.domain.models import Content, GenerateRequest, Part


def build_chat_request(history: Iterable[ChatTurn], utterance: str, system_instruction: str) -> GenerateRequest:
    """历史中没有文本的消息会被跳过；非 user 角色一律映射为 model。"""

    contents = [
        Content(role="user" if turn.role == "user" else "model", parts=[Part(text=turn.text)])
        for turn in history
        if turn.text
    ]
    contents.append(Content(role="user", parts=[Part(text=utterance)]))
    return GenerateRequest(contents=contents, system_instruction=system_instruction)
