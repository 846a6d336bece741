from typing import Dict, List

from garden_core.domain.conversation import ChatTurn, ConversationIdentity
from garden_core.infrastructure.storage.base import ConversationLog


class InMemoryConversationStore(ConversationLog):
    """进程内会话日志，适合测试与单进程场景。"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._turns: Dict[str, List[ChatTurn]] = {}

    def _insert(self, identity: ConversationIdentity, turn: ChatTurn) -> None:
        self._turns.setdefault(identity.path, []).append(turn)

    def _load(self, identity: ConversationIdentity) -> List[ChatTurn]:
        return list(self._turns.get(identity.path, ()))
