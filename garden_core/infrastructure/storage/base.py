"""会话日志的公共实现：时间戳分配、窗口计算与订阅推送。

子类只需实现三个存储原语：
- _insert(identity, turn): 持久化一条消息。
- _load(identity): 读取该会话的全部消息（顺序不限）。
- _recover_clock(identity): 进程重启后恢复最后的 (created_at, seq)，内存实现返回 None。
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from garden_core.domain.conversation import (
    DEFAULT_HISTORY_WINDOW,
    ChatTurn,
    ConversationIdentity,
    ErrorCallback,
    Snapshot,
    Subscription,
    UpdateCallback,
)
from garden_core.domain.exceptions import BusinessError, StoreReadError, StoreWriteError
from garden_core.domain.models import Role
from garden_core.infrastructure.logging.logger import log_event, logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationLog:
    """append-only、按 created_at 排序的会话日志，带实时订阅。"""

    def __init__(
        self,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.history_window = history_window
        self._now = clock
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._clocks: Dict[str, Tuple[datetime, int]] = {}

    # ---- 存储原语 ----

    def _insert(self, identity: ConversationIdentity, turn: ChatTurn) -> None:
        raise NotImplementedError

    def _load(self, identity: ConversationIdentity) -> List[ChatTurn]:
        raise NotImplementedError

    def _recover_clock(self, identity: ConversationIdentity) -> Optional[Tuple[datetime, int]]:
        return None

    # ---- 写 ----

    async def append(self, identity: ConversationIdentity, role: Role, text: str) -> str:
        """写入一条消息，返回存储分配的 id；订阅者随后收到新的窗口。"""

        turn = self._stamp(identity, role, text)
        try:
            self._insert(identity, turn)
        except BusinessError:
            raise
        except Exception as e:
            raise StoreWriteError(code="STORE_WRITE_ERROR", message=str(e), conversation=identity.path) from e
        self._clocks[identity.path] = (turn.created_at, turn.seq)
        log_event(logging.INFO, "Appended turn", {"conversation": identity.path}, turn_id=turn.id, role=role)
        self._publish(identity)
        return turn.id

    def _stamp(self, identity: ConversationIdentity, role: Role, text: str) -> ChatTurn:
        last = self._clocks.get(identity.path)
        if last is None:
            last = self._recover_clock(identity)
        now = self._now()
        seq = 0
        if last is not None:
            last_ts, last_seq = last
            if now < last_ts:
                now = last_ts
            seq = last_seq + 1
        return ChatTurn(id=f"t-{uuid4().hex}", role=role, text=text, created_at=now, seq=seq)

    # ---- 读 / 订阅 ----

    def window(self, identity: ConversationIdentity) -> Snapshot:
        """最近 history_window 条消息，按时间升序，空文本消息被过滤。"""

        turns = sorted(self._load(identity), key=lambda t: t.sort_key)
        recent = turns[-self.history_window:]
        return tuple(t for t in recent if t.text)

    def subscribe(
        self,
        identity: ConversationIdentity,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        sub = Subscription(identity, on_update=on_update, on_error=on_error, release=self._release)
        self._subscribers.setdefault(identity.path, []).append(sub)
        self._push(identity, [sub])
        return sub

    def subscriber_count(self, identity: ConversationIdentity) -> int:
        return len(self._subscribers.get(identity.path, ()))

    def _release(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.identity.path)
        if subs and sub in subs:
            subs.remove(sub)
            if not subs:
                del self._subscribers[sub.identity.path]

    def _publish(self, identity: ConversationIdentity) -> None:
        subs = list(self._subscribers.get(identity.path, ()))
        if subs:
            self._push(identity, subs)

    def _push(self, identity: ConversationIdentity, subs: List[Subscription]) -> None:
        try:
            snapshot = self.window(identity)
        except Exception as e:
            err = e if isinstance(e, StoreReadError) else StoreReadError(
                code="STORE_READ_ERROR", message=str(e), conversation=identity.path
            )
            logger.error(
                "Error listening to chat history: %s",
                err,
                extra={"extra": {"conversation": identity.path}},
            )
            for sub in subs:
                self._fail(sub, err)
            return
        for sub in subs:
            try:
                sub.deliver(snapshot)
            except Exception as e:
                logger.exception(
                    "Subscriber callback failed",
                    extra={"extra": {"conversation": identity.path}},
                )
                self._fail(sub, e)

    @staticmethod
    def _fail(sub: Subscription, error: BaseException) -> None:
        try:
            sub.fail(error)
        except Exception:
            logger.exception(
                "Subscriber error callback failed",
                extra={"extra": {"conversation": sub.identity.path}},
            )
