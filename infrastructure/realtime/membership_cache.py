"""In-process cache of connected users and group memberships.

Populated when a socket authenticates and pruned when it disconnects.
The member sets are a snapshot of the durable group record taken at
connect time; they are never re-synced from storage otherwise.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Optional, Set

from domain.chat.entity import ConnectedUser


class MembershipCache:
    """Process-wide user -> display name and group -> member set maps."""

    def __init__(self) -> None:
        self._users: Dict[str, ConnectedUser] = {}
        self._groups: Dict[str, Set[str]] = {}

    # -------------------- users --------------------
    def get_user(self, user_id: str) -> Optional[ConnectedUser]:
        return self._users.get(user_id)

    def upsert_user(self, user_id: str, display_name: str) -> ConnectedUser:
        user = ConnectedUser(user_id=user_id, display_name=display_name)
        self._users[user_id] = user
        return user

    def remove_user(self, user_id: str) -> None:
        self._users.pop(user_id, None)

    # -------------------- groups --------------------
    def replace_members(self, group_id: str, members: Iterable[str]) -> None:
        self._groups[group_id] = set(members)

    def remove_member(self, group_id: str, user_id: str) -> None:
        members = self._groups.get(group_id)
        if members is not None:
            members.discard(user_id)

    def members(self, group_id: str) -> FrozenSet[str]:
        return frozenset(self._groups.get(group_id, ()))
