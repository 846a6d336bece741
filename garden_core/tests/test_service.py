import asyncio

import pytest

from garden_core.api import service
from garden_core.config.settings import InferenceConfig
from garden_core.domain.exceptions import AnalysisFailed, SendRejectedError, ValidationError
from garden_core.infrastructure.retry import BackoffRetryExecutor
from garden_core.infrastructure.storage.memory_store import InMemoryConversationStore
from garden_core.scan import ScanOrchestrator


CONFIG = InferenceConfig(api_key="k" * 12, namespace="app")


async def no_sleep(_seconds):
    return None


class EchoClient:
    name = "echo"

    def __init__(self, text):
        self.text = text

    async def generate(self, req, model):
        return {"candidates": [{"content": {"parts": [{"text": self.text}]}}]}


class GatedClient:
    """最后一条消息含 "wait" 时阻塞，直到 gate 被放行。"""

    name = "gated"

    def __init__(self):
        self.gate = asyncio.Event()
        self.waiting = asyncio.Event()

    async def generate(self, req, model):
        last = req.contents[-1].parts[0].text
        if "wait" in last:
            self.waiting.set()
            await self.gate.wait()
        return {"candidates": [{"content": {"parts": [{"text": f"re: {last}"}]}}]}


@pytest.fixture
def chat_backend(monkeypatch):
    store = InMemoryConversationStore()
    monkeypatch.setattr(service, "_config", CONFIG)
    monkeypatch.setattr(service, "_store", store)
    monkeypatch.setattr(service, "_active_chats", {})
    return store


@pytest.mark.asyncio
async def test_send_chat_message_and_read_back(monkeypatch, chat_backend):
    monkeypatch.setattr(service, "_client", EchoClient("Try bottom watering."))
    out = await service.send_chat_message("u1", "Vacation tips?")
    assert out["conversation"] == "artifacts/app/users/u1/plant_bot_chats"
    assert out["failed"] is False
    messages = service.get_conversation_messages("u1")
    assert [(m["role"], m["text"]) for m in messages] == [
        ("user", "Vacation tips?"),
        ("model", "Try bottom watering."),
    ]


@pytest.mark.asyncio
async def test_repeated_calls_leave_no_subscriptions(monkeypatch, chat_backend):
    monkeypatch.setattr(service, "_client", EchoClient("ok"))
    for i in range(5):
        await service.send_chat_message(f"user-{i}", "hello")
        service.get_conversation_messages(f"user-{i}")
    for i in range(5):
        identity = service._identity(f"user-{i}")
        assert chat_backend.subscriber_count(identity) == 0
    assert service.active_chat_count() == 0


@pytest.mark.asyncio
async def test_users_do_not_block_each_other(monkeypatch, chat_backend):
    client = GatedClient()
    monkeypatch.setattr(service, "_client", client)

    alice = asyncio.create_task(service.send_chat_message("alice", "please wait"))
    await client.waiting.wait()
    assert service.active_chat_count() == 1

    bob = await service.send_chat_message("bob", "hi")
    assert bob["failed"] is False

    with pytest.raises(SendRejectedError) as exc:
        await service.send_chat_message("alice", "again")
    assert exc.value.code == "SEND_IN_PROGRESS"

    client.gate.set()
    out = await alice
    assert out["failed"] is False
    assert service.active_chat_count() == 0
    assert [m["text"] for m in service.get_conversation_messages("alice")] == [
        "please wait",
        "re: please wait",
    ]
    assert [m["text"] for m in service.get_conversation_messages("bob")] == ["hi", "re: hi"]


@pytest.mark.asyncio
async def test_traversal_user_id_is_rejected(monkeypatch, chat_backend):
    monkeypatch.setattr(service, "_client", EchoClient("ok"))
    with pytest.raises(ValidationError):
        await service.send_chat_message("../../../../escaped", "hi")
    with pytest.raises(ValidationError):
        service.get_conversation_messages("a/b")
    assert service.active_chat_count() == 0


@pytest.mark.asyncio
async def test_run_scan_returns_plain_dict(monkeypatch):
    body = '{"health_percentage": 55, "predicted_disease": "Powdery Mildew", "home_remedies": ["a", "b", "c"]}'
    scanner = ScanOrchestrator(
        config=CONFIG,
        client=EchoClient(body),
        retry=BackoffRetryExecutor(sleep=no_sleep),
        instruction="analyze",
    )
    monkeypatch.setattr(service, "_scanner", scanner)
    out = await service.run_scan(b"img")
    assert out["health_percentage"] == 55
    assert out["health_band"] == "poor"
    assert out["remedies_heading"] == "DIY Home Remedies"
    with pytest.raises(AnalysisFailed):
        await service.run_scan(b"")
