"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings, and provide the shared
fakes (identity provider, completion provider, websocket) used across
the suite.
"""
import functools
import os
from typing import Dict, List, Optional

import pytest

# Settings are read at import time; keep tests on the in-process store
os.environ.setdefault("DATABASE__BACKEND", "memory")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from starlette.websockets import WebSocketState  # noqa: E402

from application.ports.identity import IdentityUser  # noqa: E402
from application.services.realtime_service import RealtimeService  # noqa: E402
from domain.chat.entity import Group, GroupRef, UserProfile  # noqa: E402
from domain.common.exceptions import UpstreamFailureException  # noqa: E402
from infrastructure.realtime.connection_manager import ConnectionManager  # noqa: E402
from infrastructure.realtime.membership_cache import MembershipCache  # noqa: E402
from infrastructure.repositories.memory import InMemoryDocumentStore  # noqa: E402
from infrastructure.unit_of_work import InMemoryUnitOfWork  # noqa: E402


class FakeIdentityProvider:
    def __init__(self, users: Optional[Dict[str, IdentityUser]] = None):
        self.users: Dict[str, IdentityUser] = dict(users or {})
        self.fail = False
        self.calls: List[str] = []

    def add(self, user_id: str, first_name: Optional[str] = None, last_name: Optional[str] = None) -> None:
        self.users[user_id] = IdentityUser(id=user_id, first_name=first_name, last_name=last_name)

    async def get_user(self, user_id: str) -> Optional[IdentityUser]:
        self.calls.append(user_id)
        if self.fail:
            raise UpstreamFailureException("identity", "stubbed outage")
        return self.users.get(user_id)


class FakeCompletionProvider:
    def __init__(self, reply: str = "Here to help"):
        self.reply = reply
        self.fail = False
        self.transcripts: List[list] = []
        self.before_reply = None

    async def complete(self, messages) -> str:
        self.transcripts.append(list(messages))
        if self.before_reply is not None:
            await self.before_reply()
        if self.fail:
            raise UpstreamFailureException("completion", "stubbed outage")
        return self.reply


class FakeWebSocket:
    """Minimal stand-in for starlette's WebSocket used by the realtime layer."""

    def __init__(self, *, fail_send: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: List[str] = []
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.fail_send = fail_send
        self.on_send = None

    async def send_text(self, text: str) -> None:
        if self.on_send is not None:
            await self.on_send()
        if self.fail_send:
            raise RuntimeError("socket write failed")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError("Cannot call close once the socket is closed")
        self.close_code = code
        self.close_reason = reason
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        """Simulate the client going away."""
        self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def uow_factory(store):
    return functools.partial(InMemoryUnitOfWork, store)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    provider = FakeIdentityProvider()
    provider.add("alice", "Alice", "Liddell")
    provider.add("bob", "Bob", None)
    provider.add("carol")
    return provider


@pytest.fixture
def completion() -> FakeCompletionProvider:
    return FakeCompletionProvider()


@pytest.fixture
def connections() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def membership() -> MembershipCache:
    return MembershipCache()


@pytest.fixture
def realtime(uow_factory, identity, connections, membership) -> RealtimeService:
    return RealtimeService(
        uow_factory=uow_factory,
        identity=identity,
        connections=connections,
        membership=membership,
    )


@pytest.fixture
def seed_group(store):
    """Put a group straight into the store, bypassing the services."""

    def _seed(group_id: str = "g1", name: str = "Support", members=("alice", "bob"), owner: str = "alice") -> Group:
        group = Group(id=group_id, owner_user_id=owner, name=name, members=list(members))
        store.groups[group_id] = group
        for member in members:
            profile = store.profiles.setdefault(member, UserProfile(id=member))
            profile.add_group(GroupRef(id=group_id, name=name))
        return group

    return _seed
