"""聊天编排核心模块。

一次 send 的状态流转：IDLE -> SENDING -> AWAITING_REPLY -> IDLE。

1. 拒绝空白输入，以及同一个编排器实例上并发的第二次发送（single-flight）。
2. 立即写入 user 消息；该写入失败直接抛给调用方，不重试。
3. 用订阅最近一次推送的快照（而不是重新读取）构造对话上下文。
4. 经 BackoffRetryExecutor 调用推理端点。
5. 成功则写入 model 消息；重试耗尽或响应为空时写入一条固定的致歉消息，不抛异常。

两次写入之间没有事务关联：进程在两步之间退出时，日志里会留下一条没有回复的 user 消息。
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from garden_core.chat.request_builder import build_chat_request
from garden_core.config.settings import InferenceConfig
from garden_core.domain.conversation import (
    ConversationIdentity,
    ConversationStore,
    ErrorCallback,
    Snapshot,
    Subscription,
    UpdateCallback,
)
from garden_core.domain.exceptions import SendRejectedError
from garden_core.infrastructure.logging.logger import log_event, logger
from garden_core.infrastructure.retry import BackoffRetryExecutor
from garden_core.prompts import load_system_prompt
from garden_core.providers.base import InferenceClient
from garden_core.scan.decoder import extract_text


CHAT_MODEL = "garden-chat"
CHAT_APOLOGY = (
    "Oops! I ran into a technical issue. The gardening bot is on a coffee break. "
    "Please try your question again."
)


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_REPLY = "awaiting_reply"


@dataclass(frozen=True)
class SendResult:
    user_turn_id: str
    reply_turn_id: str
    failed: bool = False


class ChatOrchestrator:
    def __init__(
        self,
        config: InferenceConfig,
        store: ConversationStore,
        client: InferenceClient,
        retry: Optional[BackoffRetryExecutor] = None,
        system_instruction: Optional[str] = None,
        model: str = CHAT_MODEL,
    ):
        self._config = config
        self._store = store
        self._client = client
        self._retry = retry or BackoffRetryExecutor()
        self._system_instruction = system_instruction or load_system_prompt()
        self._model = model
        self._state = ChatState.IDLE
        self._subscriptions: Dict[str, Subscription] = {}
        self._listeners: List[Subscription] = []

    @property
    def state(self) -> ChatState:
        return self._state

    def identity(self, user_id: str) -> ConversationIdentity:
        return ConversationIdentity(namespace=self._config.namespace, user_id=user_id)

    def open(
        self,
        identity: ConversationIdentity,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """订阅会话日志。

        本编排器为每个会话维护一个内部订阅，其最近快照即上下文视图。
        不带回调时返回该内部订阅；带回调时为调用方单独建立一个订阅，
        close() 时一并释放。
        """

        view_sub = self._ensure_view(identity)
        if on_update is None and on_error is None:
            return view_sub
        sub = self._store.subscribe(identity, on_update=on_update, on_error=on_error)
        self._listeners.append(sub)
        return sub

    def _ensure_view(self, identity: ConversationIdentity) -> Subscription:
        current = self._subscriptions.get(identity.path)
        if current is not None and not current.closed:
            return current
        sub = self._store.subscribe(identity)
        self._subscriptions[identity.path] = sub
        return sub

    def view(self, identity: ConversationIdentity) -> Snapshot:
        sub = self._subscriptions.get(identity.path)
        return sub.latest if sub is not None else ()

    def close(self) -> None:
        for sub in [*self._subscriptions.values(), *self._listeners]:
            sub.unsubscribe()
        self._subscriptions.clear()
        self._listeners.clear()

    async def send(self, identity: ConversationIdentity, utterance: str) -> SendResult:
        text = (utterance or "").strip()
        if not text:
            raise SendRejectedError(code="EMPTY_UTTERANCE", message="utterance is blank")
        if self._state is not ChatState.IDLE:
            raise SendRejectedError(code="SEND_IN_PROGRESS", message=f"chat is {self._state.value}")

        self._state = ChatState.SENDING
        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "conversation": identity.path}
        try:
            self._ensure_view(identity)
            user_turn_id = await self._store.append(identity, "user", text)
            log_event(logging.INFO, "Stored user turn", log_ctx, turn_id=user_turn_id)

            self._state = ChatState.AWAITING_REPLY
            history = [t for t in self.view(identity) if t.id != user_turn_id]
            req = build_chat_request(history, text, self._system_instruction)

            async def generate_content() -> Dict[str, Any]:
                return await self._client.generate(req, self._model)

            log_event(
                logging.INFO,
                "Calling provider",
                log_ctx,
                provider=self._client.name,
                model=self._model,
                message_count=len(req.contents),
            )
            failed = False
            try:
                envelope = await self._retry.execute(generate_content)
                reply = extract_text(envelope)
            except Exception as e:
                logger.error(
                    "Inference Error: %s",
                    e,
                    exc_info=True,
                    extra={"extra": {**log_ctx, "error": type(e).__name__, "code": getattr(e, "code", None)}},
                )
                reply = CHAT_APOLOGY
                failed = True

            reply_turn_id = await self._store.append(identity, "model", reply)
            log_event(
                logging.INFO,
                "Stored model turn",
                log_ctx,
                turn_id=reply_turn_id,
                failed=failed,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            return SendResult(user_turn_id=user_turn_id, reply_turn_id=reply_turn_id, failed=failed)
        finally:
            self._state = ChatState.IDLE
