import functools

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from application.dto import ChatMessageDTO, GroupDTO
from domain.chat.entity import ChatMessage, Group, GroupRef, UserProfile
from domain.common.exceptions import GroupNotFoundException
from infrastructure.database import build_async_url, create_engine_for, create_tables
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork




@pytest.fixture
async def sql_uow_factory(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    await create_tables(engine)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    yield functools.partial(SQLAlchemyUnitOfWork, session_factory)
    await engine.dispose()


def test_build_async_url_maps_sync_drivers():
    assert build_async_url("postgresql://u:p@db/chat").startswith("postgresql+asyncpg://")
    assert build_async_url("sqlite:///chat.db") == "sqlite+aiosqlite:///chat.db"
    assert build_async_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
    with pytest.raises(ValueError):
        build_async_url("oracle://u:p@db/chat")


async def _create_group(factory, group_id="g1", owner="alice"):
    async with factory() as uow:
        await uow.profile_repository.create(UserProfile(id=owner))
        await uow.group_repository.create(Group(id=group_id, owner_user_id=owner, name="Support", members=[owner]))
        await uow.profile_repository.add_group(owner, GroupRef(id=group_id, name="Support"))


async def test_group_roundtrip_with_messages_in_order(sql_uow_factory):
    await _create_group(sql_uow_factory)

    for body in ("first", "second"):
        async with sql_uow_factory() as uow:
            await uow.group_repository.append_message(
                "g1", ChatMessage(user_id="alice", display_name="Alice", body=body, query="q" if body == "second" else None)
            )

    async with sql_uow_factory(readonly=True) as uow:
        group = await uow.group_repository.get_by_id("g1")
        light = await uow.group_repository.get_by_id("g1", include_messages=False)

    assert group.owner_user_id == "alice"
    assert group.members == ["alice"]
    assert [(m.body, m.query) for m in group.messages] == [("first", None), ("second", "q")]
    assert light.messages == []


async def test_add_member_is_deduplicated(sql_uow_factory):
    await _create_group(sql_uow_factory)
    async with sql_uow_factory() as uow:
        await uow.profile_repository.create(UserProfile(id="bob"))

    for _ in range(2):
        async with sql_uow_factory() as uow:
            await uow.group_repository.add_member("g1", "bob")
            await uow.profile_repository.add_group("bob", GroupRef(id="g1", name="Support"))

    async with sql_uow_factory(readonly=True) as uow:
        group = await uow.group_repository.get_by_id("g1")
        bob = await uow.profile_repository.get_by_id("bob")

    assert group.members == ["alice", "bob"]
    assert [r.id for r in bob.groups] == ["g1"]


async def test_failed_unit_rolls_back(sql_uow_factory):
    with pytest.raises(RuntimeError):
        async with sql_uow_factory() as uow:
            await uow.profile_repository.create(UserProfile(id="alice"))
            await uow.group_repository.create(Group(id="g1", owner_user_id="alice", name="Support", members=["alice"]))
            raise RuntimeError("boom")

    async with sql_uow_factory(readonly=True) as uow:
        assert await uow.group_repository.get_by_id("g1") is None
        assert await uow.profile_repository.get_by_id("alice") is None


async def test_profile_lists_groups_in_join_order(sql_uow_factory):
    await _create_group(sql_uow_factory, "g1")
    async with sql_uow_factory() as uow:
        await uow.group_repository.create(Group(id="g2", owner_user_id="bob", name="Sales", members=["bob"]))
        await uow.profile_repository.add_group("alice", GroupRef(id="g2", name="Sales"))

    async with sql_uow_factory(readonly=True) as uow:
        profile = await uow.profile_repository.get_by_id("alice")

    assert [(r.id, r.name) for r in profile.groups] == [("g1", "Support"), ("g2", "Sales")]


async def test_missing_group_operations(sql_uow_factory):
    with pytest.raises(GroupNotFoundException):
        async with sql_uow_factory() as uow:
            await uow.group_repository.append_message("nope", ChatMessage(user_id="a", display_name="a", body="x"))
    with pytest.raises(GroupNotFoundException):
        async with sql_uow_factory() as uow:
            await uow.group_repository.add_member("nope", "bob")


async def test_stored_message_timestamp_keeps_utc_wire_format(sql_uow_factory):
    await _create_group(sql_uow_factory)
    sent = ChatMessage(user_id="alice", display_name="Alice", body="hi")
    live = ChatMessageDTO.from_entity(sent).to_wire()

    async with sql_uow_factory() as uow:
        await uow.group_repository.append_message("g1", sent)
    async with sql_uow_factory(readonly=True) as uow:
        group = await uow.group_repository.get_by_id("g1")

    stored = GroupDTO.from_entity(group).to_wire()["messages"][0]
    assert stored["timestamp"] == live["timestamp"]
    assert stored["timestamp"].endswith("Z")
    assert group.messages[0].timestamp.tzinfo is not None
