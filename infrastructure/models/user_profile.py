"""
用户档案数据库模型
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from .base import Base


class UserProfileModel(Base):
    """用户档案表（用户ID来自外部身份服务）"""
    __tablename__ = "user_profiles"

    id = Column(String(64), primary_key=True, comment="外部身份服务用户ID")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )


class UserGroupRefModel(Base):
    """用户群组索引表：反范式保存群组名称，用于“我的群组”列表"""
    __tablename__ = "user_group_refs"
    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_user_group_refs_user_group"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID（即加入顺序）")
    user_id = Column(
        String(64),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="用户ID",
    )
    group_id = Column(String(64), nullable=False, comment="群组ID")
    name = Column(String(255), nullable=False, comment="群组名称")
