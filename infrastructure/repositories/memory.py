"""In-process document store and repositories.

Single-process only. Useful for local dev and tests. Writes made through a
unit of work are staged and applied together at commit, so a unit that
fails halfway leaves the store untouched.

Staged writes never mutate a stored document in place: they replace the
document they touch with an updated copy. Applying a unit therefore only
copies the two table dicts and the documents it changes.
"""
from __future__ import annotations

import dataclasses
from typing import Callable, Dict, List, Optional

from domain.chat.entity import ChatMessage, Group, GroupRef, UserProfile
from domain.chat.repository import GroupRepository, UserProfileRepository
from domain.common.exceptions import GroupNotFoundException


GroupTable = Dict[str, Group]
ProfileTable = Dict[str, UserProfile]
StagedWrite = Callable[[GroupTable, ProfileTable], None]


def _copy_group(group: Group, *, include_messages: bool = True) -> Group:
    # 消息记录只追加不修改，列表浅拷贝即可
    messages = list(group.messages) if include_messages else []
    return dataclasses.replace(group, members=list(group.members), messages=messages)


def _copy_profile(profile: UserProfile) -> UserProfile:
    return UserProfile(id=profile.id, groups=[GroupRef(id=r.id, name=r.name) for r in profile.groups])


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self.groups: GroupTable = {}
        self.profiles: ProfileTable = {}

    def apply(self, writes: List[StagedWrite]) -> None:
        """Apply staged writes to copies of the tables, then swap them in.

        Runs without awaiting, so no other handler can observe a
        half-applied unit.
        """
        if not writes:
            return
        groups = dict(self.groups)
        profiles = dict(self.profiles)
        for write in writes:
            write(groups, profiles)
        self.groups, self.profiles = groups, profiles


class InMemoryGroupRepository(GroupRepository):
    def __init__(self, store: InMemoryDocumentStore, staged: List[StagedWrite]) -> None:
        self._store = store
        self._staged = staged

    async def get_by_id(self, group_id: str, *, include_messages: bool = True) -> Optional[Group]:
        group = self._store.groups.get(group_id)
        if group is None:
            return None
        return _copy_group(group, include_messages=include_messages)

    async def create(self, group: Group) -> Group:
        snapshot = _copy_group(group)

        def write(groups: GroupTable, profiles: ProfileTable) -> None:
            groups[snapshot.id] = snapshot

        self._staged.append(write)
        return group

    async def add_member(self, group_id: str, user_id: str) -> None:
        if group_id not in self._store.groups:
            raise GroupNotFoundException(group_id)

        def write(groups: GroupTable, profiles: ProfileTable) -> None:
            group = groups.get(group_id)
            if group is None:
                raise GroupNotFoundException(group_id)
            if group.has_member(user_id):
                return
            groups[group_id] = dataclasses.replace(group, members=[*group.members, user_id])

        self._staged.append(write)

    async def append_message(self, group_id: str, message: ChatMessage) -> None:
        if group_id not in self._store.groups:
            raise GroupNotFoundException(group_id)
        snapshot = dataclasses.replace(message)

        def write(groups: GroupTable, profiles: ProfileTable) -> None:
            group = groups.get(group_id)
            if group is None:
                raise GroupNotFoundException(group_id)
            groups[group_id] = dataclasses.replace(group, messages=[*group.messages, snapshot])

        self._staged.append(write)


class InMemoryUserProfileRepository(UserProfileRepository):
    def __init__(self, store: InMemoryDocumentStore, staged: List[StagedWrite]) -> None:
        self._store = store
        self._staged = staged

    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        profile = self._store.profiles.get(user_id)
        return _copy_profile(profile) if profile is not None else None

    async def create(self, profile: UserProfile) -> UserProfile:
        snapshot = _copy_profile(profile)

        def write(groups: GroupTable, profiles: ProfileTable) -> None:
            profiles.setdefault(snapshot.id, snapshot)

        self._staged.append(write)
        return profile

    async def add_group(self, user_id: str, ref: GroupRef) -> None:
        snapshot = GroupRef(id=ref.id, name=ref.name)

        def write(groups: GroupTable, profiles: ProfileTable) -> None:
            current = profiles.get(user_id)
            profile = _copy_profile(current) if current is not None else UserProfile(id=user_id)
            if profile.add_group(snapshot):
                profiles[user_id] = profile

        self._staged.append(write)
