"""
群聊仓储接口 - 定义文档存储访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import ChatMessage, Group, GroupRef, UserProfile


class GroupRepository(ABC):
    """群组仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get_by_id(self, group_id: str, *, include_messages: bool = True) -> Optional[Group]:
        """根据ID获取群组（可选是否加载消息历史）"""
        pass

    @abstractmethod
    async def create(self, group: Group) -> Group:
        """创建群组"""
        pass

    @abstractmethod
    async def add_member(self, group_id: str, user_id: str) -> None:
        """向成员列表追加用户（已存在则忽略）；群组不存在时抛出 GroupNotFoundException"""
        pass

    @abstractmethod
    async def append_message(self, group_id: str, message: ChatMessage) -> None:
        """追加一条消息；群组不存在时抛出 GroupNotFoundException"""
        pass


class UserProfileRepository(ABC):
    """用户档案仓储抽象接口"""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        """根据用户ID获取档案"""
        pass

    @abstractmethod
    async def create(self, profile: UserProfile) -> UserProfile:
        """创建档案"""
        pass

    @abstractmethod
    async def add_group(self, user_id: str, ref: GroupRef) -> None:
        """向用户群组索引追加一项（按群组ID去重）"""
        pass
