import json

import pytest

from application.services.realtime_service import UNAUTHORIZED_CLOSE_CODE
from conftest import FakeWebSocket
from domain.chat.entity import ChatMessage
from domain.common.exceptions import MissingParameterException


pytestmark = pytest.mark.asyncio


async def _connect(realtime, user_id, group_id="g1"):
    ws = FakeWebSocket()
    ok = await realtime.connect(ws, user_id, group_id)
    return ws, ok


# -------------------- connect --------------------
async def test_connect_registers_user_and_snapshot_of_members(realtime, seed_group, connections, membership):
    seed_group(members=("alice", "bob"))

    ws, ok = await _connect(realtime, "alice")

    assert ok is True
    assert ws.close_code is None
    assert [(c.user_id, c.group_id) for c in connections.snapshot()] == [("alice", "g1")]
    assert membership.get_user("alice").display_name == "Alice Liddell"
    assert membership.members("g1") == frozenset({"alice", "bob"})


async def test_display_name_falls_back_to_user_id(realtime, seed_group, membership):
    seed_group(members=("carol",), owner="carol")

    _, ok = await _connect(realtime, "carol")

    assert ok
    assert membership.get_user("carol").display_name == "carol"


@pytest.mark.parametrize(
    "user_id,group_id",
    [
        ("mallory", "g1"),  # unknown to the identity provider
        ("alice", "nope"),  # group does not exist
        ("carol", "g1"),  # real user, not a member
    ],
)
async def test_connect_rejects_with_4001(realtime, seed_group, connections, membership, user_id, group_id):
    seed_group(members=("alice", "bob"))

    ws, ok = await _connect(realtime, user_id, group_id)

    assert ok is False
    assert ws.close_code == UNAUTHORIZED_CLOSE_CODE
    assert ws.close_reason == "Unauthorized"
    assert len(connections) == 0
    assert membership.get_user(user_id) is None


async def test_connect_identity_outage_closes_socket(realtime, seed_group, identity):
    seed_group()
    identity.fail = True

    ws, ok = await _connect(realtime, "alice")

    assert ok is False
    assert ws.close_code == UNAUTHORIZED_CLOSE_CODE


@pytest.mark.parametrize("user_id,group_id,field", [(None, "g1", "userId"), ("alice", "", "groupId")])
async def test_connect_missing_parameter(realtime, user_id, group_id, field):
    with pytest.raises(MissingParameterException) as exc_info:
        await realtime.connect(FakeWebSocket(), user_id, group_id)
    assert exc_info.value.field == field


# -------------------- disconnect --------------------
async def test_disconnect_cleans_up_and_is_idempotent(realtime, seed_group, connections, membership):
    seed_group()
    ws, _ = await _connect(realtime, "alice")

    await realtime.disconnect(ws)
    await realtime.disconnect(ws)

    assert len(connections) == 0
    assert membership.get_user("alice") is None
    assert membership.members("g1") == frozenset({"bob"})


async def test_disconnect_of_unregistered_socket_is_a_noop(realtime):
    await realtime.disconnect(FakeWebSocket())


async def test_disconnected_member_no_longer_receives(realtime, seed_group):
    seed_group()
    alice, _ = await _connect(realtime, "alice")
    bob, _ = await _connect(realtime, "bob")

    await realtime.disconnect(bob)
    await realtime.handle_text(alice, "alice", "g1", "anyone?")

    assert bob.sent == []
    assert len(alice.sent) == 1


# -------------------- message ingress --------------------
async def test_message_is_persisted_and_broadcast_to_group(realtime, seed_group, store):
    seed_group()
    seed_group("g2", members=("alice",))
    alice, _ = await _connect(realtime, "alice")
    bob, _ = await _connect(realtime, "bob")
    elsewhere, _ = await _connect(realtime, "alice", "g2")

    message = await realtime.handle_text(alice, "alice", "g1", "  hello  ")

    assert message.body == "hello"
    payload = json.loads(bob.sent[0])
    assert payload["userId"] == "alice"
    assert payload["name"] == "Alice Liddell"
    assert payload["message"] == "hello"
    assert payload["timestamp"].endswith("Z")
    assert "query" not in payload
    assert alice.sent == bob.sent
    assert elsewhere.sent == []

    stored = store.groups["g1"].messages
    assert [m.body for m in stored] == ["hello"]


async def test_blank_message_is_ignored(realtime, seed_group, store):
    seed_group()
    alice, _ = await _connect(realtime, "alice")

    assert await realtime.handle_text(alice, "alice", "g1", "   ") is None
    assert alice.sent == []
    assert store.groups["g1"].messages == []


async def test_message_from_forgotten_user_closes_socket(realtime, seed_group, membership, store):
    seed_group()
    alice, _ = await _connect(realtime, "alice")
    # the same user closed another tab, which drops the user from the cache
    membership.remove_user("alice")

    assert await realtime.handle_text(alice, "alice", "g1", "still here") is None
    assert alice.close_code == UNAUTHORIZED_CLOSE_CODE
    assert store.groups["g1"].messages == []


async def test_persist_failure_still_broadcasts(realtime, seed_group, store):
    seed_group()
    alice, _ = await _connect(realtime, "alice")
    del store.groups["g1"]

    await realtime.handle_text(alice, "alice", "g1", "hello")

    assert len(alice.sent) == 1


async def test_new_connection_refreshes_member_snapshot(realtime, seed_group, store, identity):
    seed_group(members=("alice",))
    alice, _ = await _connect(realtime, "alice")
    store.groups["g1"].add_member("bob")
    bob, ok = await _connect(realtime, "bob")
    assert ok

    await realtime.handle_text(alice, "alice", "g1", "welcome")
    assert len(bob.sent) == 1


async def test_publish_carries_query_for_assistant_replies(realtime, seed_group):
    seed_group()
    alice, _ = await _connect(realtime, "alice")

    delivered = await realtime.publish(
        "g1", ChatMessage(user_id="alice", display_name="Alice Liddell", body="answer", query="question")
    )

    assert delivered == 1
    assert json.loads(alice.sent[0])["query"] == "question"
