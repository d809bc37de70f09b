import json

import pytest

from application.dto import AIChatRequestDTO
from application.services.ai_chat_service import AIChatService, build_transcript
from conftest import FakeWebSocket
from domain.common.exceptions import UnauthorizedException, UpstreamFailureException


pytestmark = pytest.mark.asyncio


def _request(user_id="alice", group_id="g1", query="How do I reset my password?", history=("hi", "hello")):
    return AIChatRequestDTO.model_validate(
        {
            "userId": user_id,
            "groupId": group_id,
            "data": {"messages": [{"message": m} for m in history], "query": query},
        }
    )


@pytest.fixture
def service(realtime, completion):
    return AIChatService(realtime=realtime, completion=completion, system_prompt="You are a support assistant.")


async def test_build_transcript_orders_system_history_query():
    turns = build_transcript(_request().data, "be nice")

    assert turns == [
        {"role": "system", "content": "be nice"},
        {"role": "user", "content": "hi"},
        {"role": "user", "content": "hello"},
        {"role": "user", "content": "How do I reset my password?"},
    ]


async def test_build_transcript_tolerates_missing_message_text():
    data = AIChatRequestDTO.model_validate(
        {"userId": "u", "groupId": "g", "data": {"messages": [{}], "query": "q"}}
    ).data

    assert build_transcript(data, "s")[1] == {"role": "user", "content": ""}


async def test_reply_is_persisted_and_broadcast_under_requester_identity(service, realtime, seed_group, store, completion):
    seed_group()
    alice, bob = FakeWebSocket(), FakeWebSocket()
    assert await realtime.connect(alice, "alice", "g1")
    assert await realtime.connect(bob, "bob", "g1")

    message = await service.chat(_request())

    assert message.body == "Here to help"
    payload = json.loads(bob.sent[0])
    assert payload["userId"] == "alice"
    assert payload["name"] == "Alice Liddell"
    assert payload["message"] == "Here to help"
    assert payload["query"] == "How do I reset my password?"
    assert store.groups["g1"].messages[-1].query == "How do I reset my password?"
    assert completion.transcripts[0][0]["role"] == "system"


async def test_requester_without_live_socket_is_rejected(service, seed_group, completion, store):
    seed_group()

    with pytest.raises(UnauthorizedException):
        await service.chat(_request())

    assert completion.transcripts == []
    assert store.groups["g1"].messages == []


async def test_upstream_failure_records_nothing(service, realtime, seed_group, completion, store):
    seed_group()
    alice = FakeWebSocket()
    await realtime.connect(alice, "alice", "g1")
    completion.fail = True

    with pytest.raises(UpstreamFailureException):
        await service.chat(_request())

    assert alice.sent == []
    assert store.groups["g1"].messages == []


async def test_requester_leaving_during_completion_is_rejected(service, realtime, seed_group, completion, store):
    seed_group()
    alice, bob = FakeWebSocket(), FakeWebSocket()
    await realtime.connect(alice, "alice", "g1")
    await realtime.connect(bob, "bob", "g1")

    async def leave():
        await realtime.disconnect(alice)

    completion.before_reply = leave

    with pytest.raises(UnauthorizedException):
        await service.chat(_request())

    assert bob.sent == []
    assert store.groups["g1"].messages == []
