"""
用户档案仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.chat.entity import GroupRef, UserProfile
from domain.chat.repository import UserProfileRepository
from infrastructure.models.user_profile import UserGroupRefModel, UserProfileModel


class SQLAlchemyUserProfileRepository(UserProfileRepository):
    """用户档案仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        """根据用户ID获取档案（群组索引按加入顺序）"""
        model = await self.session.get(UserProfileModel, user_id)
        if model is None:
            return None
        result = await self.session.execute(
            select(UserGroupRefModel)
            .where(UserGroupRefModel.user_id == user_id)
            .order_by(UserGroupRefModel.id.asc())
        )
        refs = [GroupRef(id=row.group_id, name=row.name) for row in result.scalars().all()]
        return UserProfile(id=model.id, groups=refs)

    async def create(self, profile: UserProfile) -> UserProfile:
        """创建档案"""
        self.session.add(UserProfileModel(id=profile.id))
        await self.session.flush()
        for ref in profile.groups:
            await self.add_group(profile.id, ref)
        return profile

    async def add_group(self, user_id: str, ref: GroupRef) -> None:
        """追加群组索引（同一群组只记录一次）"""
        existing = await self.session.scalar(
            select(UserGroupRefModel.id).where(
                UserGroupRefModel.user_id == user_id,
                UserGroupRefModel.group_id == ref.id,
            )
        )
        if existing is not None:
            return
        self.session.add(UserGroupRefModel(user_id=user_id, group_id=ref.id, name=ref.name))
        await self.session.flush()
