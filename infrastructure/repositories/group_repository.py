"""
群组仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.chat.entity import ChatMessage, Group
from domain.chat.repository import GroupRepository
from domain.common.exceptions import GroupNotFoundException
from infrastructure.models.group import GroupMessageModel, GroupModel


def _as_utc(value: datetime) -> datetime:
    # SQLite 不保存时区信息，读回的是 naive 的 UTC 时间
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SQLAlchemyGroupRepository(GroupRepository):
    """群组仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _message_to_entity(model: GroupMessageModel) -> ChatMessage:
        return ChatMessage(
            user_id=model.user_id,
            display_name=model.name,
            body=model.message,
            timestamp=_as_utc(model.timestamp),
            query=model.query,
        )

    def _to_entity(self, model: GroupModel, messages: List[GroupMessageModel]) -> Group:
        """将数据库模型转换为领域实体"""
        return Group(
            id=model.id,
            owner_user_id=model.owner_user_id,
            name=model.name,
            members=list(model.members or []),
            messages=[self._message_to_entity(m) for m in messages],
        )

    async def get_by_id(self, group_id: str, *, include_messages: bool = True) -> Optional[Group]:
        """根据ID获取群组"""
        model = await self.session.get(GroupModel, group_id)
        if model is None:
            return None
        messages: List[GroupMessageModel] = []
        if include_messages:
            result = await self.session.execute(
                select(GroupMessageModel)
                .where(GroupMessageModel.group_id == group_id)
                .order_by(GroupMessageModel.id.asc())
            )
            messages = list(result.scalars().all())
        return self._to_entity(model, messages)

    async def create(self, group: Group) -> Group:
        """创建群组（消息历史随后通过 append_message 追加）"""
        self.session.add(
            GroupModel(
                id=group.id,
                owner_user_id=group.owner_user_id,
                name=group.name,
                members=list(group.members),
            )
        )
        await self.session.flush()
        return group

    async def add_member(self, group_id: str, user_id: str) -> None:
        """追加成员（行锁，避免并发加入互相覆盖 JSON 列）"""
        model = await self.session.get(GroupModel, group_id, with_for_update=True)
        if model is None:
            raise GroupNotFoundException(group_id)
        members = list(model.members or [])
        if user_id in members:
            return
        members.append(user_id)
        # JSON 列需整体重新赋值才会被识别为变更
        model.members = members
        await self.session.flush()

    async def append_message(self, group_id: str, message: ChatMessage) -> None:
        """追加一条消息"""
        exists = await self.session.scalar(select(GroupModel.id).where(GroupModel.id == group_id))
        if exists is None:
            raise GroupNotFoundException(group_id)
        self.session.add(
            GroupMessageModel(
                group_id=group_id,
                user_id=message.user_id,
                name=message.display_name,
                message=message.body,
                query=message.query,
                timestamp=message.timestamp,
            )
        )
        await self.session.flush()
