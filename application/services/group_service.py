"""
群组应用服务（application/services）- 编排群组/用户档案的读写与事务
"""
from __future__ import annotations

import uuid
from typing import Callable, List, Union

from application.dto import CreatedGroupDTO, GroupDTO, UserProfileDTO
from application.ports.identity import IdentityProviderPort
from core.logging_config import get_logger
from domain.chat.entity import Group, GroupRef, UserProfile
from domain.common.exceptions import (
    GroupNotFoundException,
    NotGroupMemberException,
    UnauthorizedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)


class GroupApplicationService:
    """群组应用服务 - 处理应用层逻辑

    注意：加入群组只修改持久化成员列表，不刷新任何在线连接的成员缓存，
    新成员需重新建立 WebSocket 连接后才能收到广播。
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        identity: IdentityProviderPort,
    ):
        self._uow_factory = uow_factory
        self._identity = identity

    async def _ensure_user(self, user_id: str) -> None:
        """校验用户在身份服务中存在"""
        if await self._identity.get_user(user_id) is None:
            raise UnauthorizedException(user_id=user_id)

    async def get_messages(self, user_id: str, group_id: str) -> GroupDTO:
        """获取群组记录（含消息历史），仅成员可读"""
        await self._ensure_user(user_id)
        async with self._uow_factory(readonly=True) as uow:
            group = await uow.group_repository.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundException(group_id)
        if not group.has_member(user_id):
            raise NotGroupMemberException(group_id, user_id)
        return GroupDTO.from_entity(group)

    async def list_groups(self, user_id: str) -> Union[UserProfileDTO, List]:
        """获取用户的群组索引；档案不存在时返回空列表"""
        await self._ensure_user(user_id)
        async with self._uow_factory(readonly=True) as uow:
            profile = await uow.profile_repository.get_by_id(user_id)
        if profile is None:
            return []
        return UserProfileDTO.from_entity(profile)

    async def create_group(self, user_id: str, group_name: str) -> CreatedGroupDTO:
        """创建群组：档案、群组、索引三者在同一事务中提交"""
        await self._ensure_user(user_id)
        group_id = str(uuid.uuid4())
        async with self._uow_factory() as uow:
            if await uow.profile_repository.get_by_id(user_id) is None:
                await uow.profile_repository.create(UserProfile(id=user_id))
            await uow.group_repository.create(
                Group(id=group_id, owner_user_id=user_id, name=group_name, members=[user_id])
            )
            await uow.profile_repository.add_group(user_id, GroupRef(id=group_id, name=group_name))
        logger.info("group_created", user_id=user_id, group_id=group_id)
        return CreatedGroupDTO(user_id=user_id, group_id=group_id, group_name=group_name)

    async def join_group(self, user_id: str, group_id: str) -> GroupDTO:
        """加入群组：索引与成员列表在同一事务中更新，返回更新后的持久化记录"""
        await self._ensure_user(user_id)
        async with self._uow_factory() as uow:
            group = await uow.group_repository.get_by_id(group_id, include_messages=False)
            if group is None:
                raise GroupNotFoundException(group_id)
            if await uow.profile_repository.get_by_id(user_id) is None:
                await uow.profile_repository.create(UserProfile(id=user_id))
            await uow.profile_repository.add_group(user_id, group.to_ref())
            await uow.group_repository.add_member(group_id, user_id)

        async with self._uow_factory(readonly=True) as uow:
            joined = await uow.group_repository.get_by_id(group_id)
        if joined is None:
            raise GroupNotFoundException(group_id)
        logger.info("group_joined", user_id=user_id, group_id=group_id)
        return GroupDTO.from_entity(joined)
