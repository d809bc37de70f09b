"""Unit of Work 实现（SQLAlchemy / 进程内文档存储）"""
from __future__ import annotations

from typing import List, Optional, Callable
import inspect

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.group_repository import SQLAlchemyGroupRepository
from infrastructure.repositories.user_profile_repository import SQLAlchemyUserProfileRepository
from infrastructure.repositories.memory import (
    InMemoryDocumentStore,
    InMemoryGroupRepository,
    InMemoryUserProfileRepository,
    StagedWrite,
)


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._external_session = session
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self.group_repository = SQLAlchemyGroupRepository(self.session)
        self.profile_repository = SQLAlchemyUserProfileRepository(self.session)
        # 仅在非只读模式下显式开启事务
        if not self._readonly:
            self._transaction = await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # 事务在 commit/rollback 后通常会结束，这里仅在仍然活动时做安全关闭
            tx = getattr(self, "_transaction", None)
            if tx is not None and getattr(tx, "is_active", False):
                close = getattr(tx, "close", None)
                if callable(close):
                    res = close()
                    if inspect.isawaitable(res):
                        await res
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self.group_repository = None  # type: ignore[assignment]
            self.profile_repository = None  # type: ignore[assignment]

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """进程内文档存储的 Unit of Work：写操作暂存，提交时一次性应用"""

    def __init__(self, store: InMemoryDocumentStore, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self._store = store
        self._staged: List[StagedWrite] = []

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        self._staged = []
        self.group_repository = InMemoryGroupRepository(self._store, self._staged)
        self.profile_repository = InMemoryUserProfileRepository(self._store, self._staged)
        return self

    async def commit(self) -> None:
        if not self._readonly:
            self._store.apply(self._staged)
        self._staged.clear()
        self._committed = True

    async def rollback(self) -> None:
        self._staged.clear()
        self._committed = False
