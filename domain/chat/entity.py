"""
群聊领域实体
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectedUser:
    """A user holding a live, authenticated socket in this process."""

    user_id: str
    display_name: str

    @staticmethod
    def derive_display_name(user_id: str, first_name: Optional[str], last_name: Optional[str]) -> str:
        """业务规则：显示名为 "名 姓"，两者皆空时回退为用户ID"""
        name = " ".join(part for part in (first_name or "", last_name or "") if part).strip()
        return name or user_id


@dataclass
class ChatMessage:
    """群消息（人类消息或 AI 回复），只追加不修改"""

    user_id: str
    display_name: str
    body: str
    timestamp: datetime = field(default_factory=utc_now)
    query: Optional[str] = None


@dataclass
class GroupRef:
    """用户群组索引中的一项"""

    id: str
    name: str


@dataclass
class Group:
    """群组 - 持久化记录"""

    id: str
    owner_user_id: str
    name: str
    members: List[str] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.members

    def add_member(self, user_id: str) -> bool:
        """业务规则：成员列表为有序集合，重复加入不产生重复项"""
        if user_id in self.members:
            return False
        self.members.append(user_id)
        return True

    def to_ref(self) -> GroupRef:
        return GroupRef(id=self.id, name=self.name)


@dataclass
class UserProfile:
    """用户档案 - "我的群组" 反范式索引"""

    id: str
    groups: List[GroupRef] = field(default_factory=list)

    def add_group(self, ref: GroupRef) -> bool:
        if any(existing.id == ref.id for existing in self.groups):
            return False
        self.groups.append(GroupRef(id=ref.id, name=ref.name))
        return True
