"""
群组API路由 - 群组创建、加入、列表与消息历史
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.dependencies import get_group_service, json_body
from application.dto import CreateGroupDTO, JoinGroupDTO
from application.services.group_service import GroupApplicationService

router = APIRouter(tags=["群组管理"])


@router.get("/messages", summary="获取群组消息历史")
async def get_messages(
    group_id: str = Query(..., alias="groupId", min_length=1),
    user_id: str = Query(..., alias="userId", min_length=1),
    service: GroupApplicationService = Depends(get_group_service),
):
    """返回完整群组记录（含消息），仅群组成员可读"""
    group = await service.get_messages(user_id, group_id)
    return JSONResponse(content=group.to_wire())


@router.get("/groups", summary="获取用户所在群组")
async def list_groups(
    user_id: str = Query(..., alias="userId", min_length=1),
    service: GroupApplicationService = Depends(get_group_service),
):
    """用户尚无档案时返回空列表"""
    profile = await service.list_groups(user_id)
    content = profile.to_wire() if profile else []
    return JSONResponse(content=content)


@router.post("/groups", summary="创建群组")
async def create_group(
    payload: CreateGroupDTO = Depends(json_body(CreateGroupDTO)),
    service: GroupApplicationService = Depends(get_group_service),
):
    """
    创建群组，创建者自动成为唯一成员

    - **userId**: 创建者
    - **groupName**: 群组名称
    """
    created = await service.create_group(payload.user_id, payload.group_name)
    return JSONResponse(content=created.to_wire())


@router.patch("/groups", summary="加入群组")
async def join_group(
    payload: JoinGroupDTO = Depends(json_body(JoinGroupDTO)),
    service: GroupApplicationService = Depends(get_group_service),
):
    """加入群组，返回加入后的群组记录；已在线的连接需重连才能收到新成员消息"""
    group = await service.join_group(payload.user_id, payload.group_id)
    return JSONResponse(content=group.to_wire())
