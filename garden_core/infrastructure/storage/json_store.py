import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from garden_core.domain.conversation import ChatTurn, ConversationIdentity
from garden_core.domain.exceptions import StoreReadError, StoreWriteError, ValidationError
from garden_core.infrastructure.storage.base import ConversationLog


class JsonConversationStore(ConversationLog):
    """按会话路径落盘的 JSON Lines 会话日志。

    每个会话对应 <root>/<identity.path>/turns.jsonl，一行一条消息，只追加不修改。
    """

    def __init__(self, root: str | Path, **kwargs):
        super().__init__(**kwargs)
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _turns_path(self, identity: ConversationIdentity) -> Path:
        path = (self._root / identity.path / "turns.jsonl").resolve()
        if not path.is_relative_to(self._root):
            raise ValidationError(
                code="INVALID_IDENTITY",
                message="conversation path escapes storage root",
                conversation=identity.path,
            )
        return path

    def _insert(self, identity: ConversationIdentity, turn: ChatTurn) -> None:
        path = self._turns_path(identity)
        payload = {
            "id": turn.id,
            "role": turn.role,
            "text": turn.text,
            "created_at": turn.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            "seq": turn.seq,
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        except OSError as e:
            raise StoreWriteError(code="STORE_WRITE_ERROR", message=str(e), conversation=identity.path) from e

    def _load(self, identity: ConversationIdentity) -> List[ChatTurn]:
        path = self._turns_path(identity)
        items: List[ChatTurn] = []
        if not path.exists():
            return items
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StoreReadError(code="STORE_READ_ERROR", message=str(e), conversation=identity.path) from e
        for line in lines:
            try:
                items.append(self._to_turn(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                continue
        return items

    def _recover_clock(self, identity: ConversationIdentity) -> Optional[Tuple[datetime, int]]:
        turns = self._load(identity)
        if not turns:
            return None
        last = max(turns, key=lambda t: t.sort_key)
        return (last.created_at, max(t.seq for t in turns))

    @staticmethod
    def _to_turn(data: Dict[str, Any]) -> ChatTurn:
        return ChatTurn(
            id=data["id"],
            role=data["role"],
            text=data.get("text") or "",
            created_at=datetime.fromisoformat(str(data["created_at"]).replace("Z", "+00:00")),
            seq=int(data.get("seq", 0)),
        )
