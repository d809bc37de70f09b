"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输

字段别名沿用前端约定的文档结构（camelCase，消息正文字段为 ``message``）。
"""
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import List, Optional
from datetime import datetime, timezone

from domain.chat.entity import ChatMessage, Group, GroupRef, UserProfile


def to_utc_z(value: datetime) -> str:
    """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾；无时区的值按 UTC 处理"""
    ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class DTOBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        """按别名输出 JSON 兼容字典（省略 None 字段）"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# 响应/推送记录
# ---------------------------------------------------------------------------


class ChatMessageDTO(DTOBase):
    """群消息（WebSocket 推送帧与历史记录共用）"""
    user_id: str = Field(..., alias="userId")
    display_name: str = Field(..., alias="name")
    body: str = Field(..., alias="message")
    query: Optional[str] = None
    timestamp: datetime

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return to_utc_z(timestamp)

    @classmethod
    def from_entity(cls, message: ChatMessage) -> "ChatMessageDTO":
        return cls(
            user_id=message.user_id,
            display_name=message.display_name,
            body=message.body,
            query=message.query,
            timestamp=message.timestamp,
        )


class GroupRefDTO(DTOBase):
    id: str
    name: str

    @classmethod
    def from_entity(cls, ref: GroupRef) -> "GroupRefDTO":
        return cls(id=ref.id, name=ref.name)


class GroupDTO(DTOBase):
    """群组记录"""
    id: str
    owner_user_id: str = Field(..., alias="userId")
    name: str
    members: List[str]
    messages: List[ChatMessageDTO]

    @classmethod
    def from_entity(cls, group: Group) -> "GroupDTO":
        return cls(
            id=group.id,
            owner_user_id=group.owner_user_id,
            name=group.name,
            members=list(group.members),
            messages=[ChatMessageDTO.from_entity(m) for m in group.messages],
        )


class UserProfileDTO(DTOBase):
    """用户档案（我的群组索引）"""
    id: str
    groups: List[GroupRefDTO]

    @classmethod
    def from_entity(cls, profile: UserProfile) -> "UserProfileDTO":
        return cls(id=profile.id, groups=[GroupRefDTO.from_entity(g) for g in profile.groups])


class CreatedGroupDTO(DTOBase):
    user_id: str = Field(..., alias="userId")
    group_id: str = Field(..., alias="groupId")
    group_name: str = Field(..., alias="groupName")


# ---------------------------------------------------------------------------
# 请求体
# ---------------------------------------------------------------------------


class CreateGroupDTO(DTOBase):
    """创建群组"""
    user_id: str = Field(..., alias="userId", min_length=1)
    group_name: str = Field(..., alias="groupName", min_length=1)


class JoinGroupDTO(DTOBase):
    """加入群组"""
    user_id: str = Field(..., alias="userId", min_length=1)
    group_id: str = Field(..., alias="groupId", min_length=1)


class TranscriptItemDTO(DTOBase):
    """对话上下文中的一条历史消息"""
    message: Optional[str] = None


class AIChatDataDTO(DTOBase):
    messages: List[TranscriptItemDTO] = Field(default_factory=list)
    query: str = Field(..., min_length=1)


class AIChatRequestDTO(DTOBase):
    """AI 对话请求"""
    user_id: str = Field(..., alias="userId", min_length=1)
    group_id: str = Field(..., alias="groupId", min_length=1)
    data: AIChatDataDTO
