"""
群组数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text

from .base import Base


class GroupModel(Base):
    """
    群组表

    members 为有序成员ID列表（JSON），消息历史存放在 group_messages 表
    """
    __tablename__ = "groups"

    id = Column(String(64), primary_key=True, comment="群组ID（UUID）")
    owner_user_id = Column(String(64), nullable=False, index=True, comment="创建者用户ID")
    name = Column(String(255), nullable=False, comment="群组名称")
    members = Column(JSON, nullable=False, default=list, comment="成员用户ID列表")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<GroupModel(id='{self.id}', name='{self.name}')>"


class GroupMessageModel(Base):
    """群消息表（只追加），自增主键即追加顺序"""
    __tablename__ = "group_messages"
    __table_args__ = (
        Index("ix_group_messages_group_id_id", "group_id", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    group_id = Column(
        String(64),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        comment="所属群组ID",
    )
    user_id = Column(String(64), nullable=False, comment="发送者用户ID")
    name = Column(String(255), nullable=False, comment="发送者显示名")
    message = Column(Text, nullable=False, default="", comment="消息正文或 AI 回复")
    query = Column(Text, nullable=True, comment="AI 提问（仅 AI 消息）")
    timestamp = Column(DateTime(timezone=True), nullable=False, comment="服务端写入时间")
