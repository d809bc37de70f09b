import json

import pytest

from application.services.group_service import GroupApplicationService
from conftest import FakeWebSocket


pytestmark = pytest.mark.asyncio


async def test_member_chats_while_outsider_is_rejected(realtime, seed_group, store, membership, connections):
    seed_group(members=("alice",))

    alice = FakeWebSocket()
    assert await realtime.connect(alice, "alice", "g1")
    assert "alice" in membership.members("g1")

    bob = FakeWebSocket()
    assert not await realtime.connect(bob, "bob", "g1")
    assert bob.close_code == 4001

    await realtime.handle_text(alice, "alice", "g1", "hello")

    assert [m.body for m in store.groups["g1"].messages] == ["hello"]
    assert len(alice.sent) == 1
    assert bob.sent == []
    assert len(connections) == 1


async def test_joined_member_receives_after_connecting(realtime, seed_group, uow_factory, identity):
    seed_group(members=("alice",))
    groups = GroupApplicationService(uow_factory=uow_factory, identity=identity)

    alice = FakeWebSocket()
    await realtime.connect(alice, "alice", "g1")
    await realtime.disconnect(alice)

    await groups.join_group("bob", "g1")
    bob = FakeWebSocket()
    assert await realtime.connect(bob, "bob", "g1")

    await realtime.handle_text(bob, "bob", "g1", "hi all")

    assert json.loads(bob.sent[0])["message"] == "hi all"
    assert alice.sent == []
