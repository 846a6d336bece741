"""会话日志的领域模型与存储协议。

- ConversationIdentity: 会话作用域键（应用命名空间 + 用户 ID），由调用方提供。
- ChatTurn: 会话中的一条消息，写入后不可变。
- Subscription: 一个实时订阅句柄，既支持回调，也支持 ``async for`` 快照通道。
- ConversationStore: 存储协议，只要求 append 与 subscribe 两个能力。
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional, Protocol, Sequence, Tuple

from .exceptions import ValidationError
from .models import Role


DEFAULT_HISTORY_WINDOW = 50


def _is_safe_segment(value: object) -> bool:
    """只允许单个路径段：非空、不是 . 或 ..、不含分隔符与 NUL。"""

    if not isinstance(value, str) or not value.strip():
        return False
    if value in (".", ".."):
        return False
    return not any(ch in value for ch in ("/", "\\", "\x00"))


@dataclass(frozen=True)
class ConversationIdentity:
    namespace: str
    user_id: str

    def __post_init__(self) -> None:
        for name in ("namespace", "user_id"):
            if not _is_safe_segment(getattr(self, name)):
                raise ValidationError(
                    code="INVALID_IDENTITY",
                    message=f"{name} must be a single non-empty path segment",
                    field=name,
                )

    @property
    def path(self) -> str:
        """存储中的集合路径。"""

        return f"artifacts/{self.namespace}/users/{self.user_id}/plant_bot_chats"

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class ChatTurn:
    """一条会话消息。

    id、created_at 与 seq 均由存储在写入时分配；排序键为 (created_at, seq)，
    seq 是同一日志内的插入序号，用于在时间戳相同时保持插入顺序。
    """

    id: str
    role: Role
    text: str
    created_at: datetime
    seq: int = 0

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        return (self.created_at, self.seq)


Snapshot = Tuple[ChatTurn, ...]
UpdateCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[BaseException], None]


class Subscription:
    """实时订阅句柄。

    存储在订阅时立即推送一次当前窗口，之后每次变更再推送完整窗口。
    unsubscribe() 幂等，连接已关闭后调用也是安全的。
    """

    def __init__(
        self,
        identity: ConversationIdentity,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        release: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.identity = identity
        self._on_update = on_update
        self._on_error = on_error
        self._release = release
        self._latest: Optional[Snapshot] = None
        self._closed = False
        self._error: Optional[BaseException] = None
        self._queues: List[asyncio.Queue] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Snapshot:
        """最近一次推送的快照；尚未推送时为空。"""

        return self._latest or ()

    def deliver(self, snapshot: Sequence[ChatTurn]) -> None:
        if self._closed:
            return
        self._latest = tuple(snapshot)
        for q in self._queues:
            q.put_nowait(self._latest)
        if self._on_update is not None:
            self._on_update(self._latest)

    def fail(self, error: BaseException) -> None:
        """报告传输失败并关闭订阅（本层不自动重连）。"""

        if self._closed:
            return
        self._error = error
        try:
            if self._on_error is not None:
                self._on_error(error)
        finally:
            self.unsubscribe()

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        release, self._release = self._release, None
        if release is not None:
            release(self)
        for q in self._queues:
            q.put_nowait(None)

    async def snapshots(self) -> AsyncIterator[Snapshot]:
        """以异步迭代器的形式消费快照，订阅关闭后结束；传输失败时抛出原始错误。"""

        q: asyncio.Queue = asyncio.Queue()
        if self._latest is not None:
            q.put_nowait(self._latest)
        if self._closed:
            q.put_nowait(None)
        self._queues.append(q)
        try:
            while True:
                item = await q.get()
                if item is None:
                    break
                yield item
        finally:
            self._queues.remove(q)
        if self._error is not None:
            raise self._error


class ConversationStore(Protocol):
    history_window: int

    async def append(self, identity: ConversationIdentity, role: Role, text: str) -> str:
        ...

    def subscribe(
        self,
        identity: ConversationIdentity,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        ...
