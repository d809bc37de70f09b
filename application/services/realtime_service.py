"""Application service for realtime group chat.

Owns the connection lifecycle (authenticate, register, clean up), the
socket message ingress and the group broadcast. The membership cache and
connection registry are only mutated from here.

Every await below (identity lookup, document read/write, socket send) is
a point where other connections' handlers may run, so required state is
looked up again after each one instead of being carried across it.
"""
from __future__ import annotations

from typing import Callable, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from application.dto import ChatMessageDTO
from application.ports.identity import IdentityProviderPort
from core.logging_config import get_logger
from domain.chat.entity import ChatMessage, ConnectedUser
from domain.common.exceptions import (
    BusinessException,
    GroupNotFoundException,
    MissingParameterException,
    NotGroupMemberException,
    UnauthorizedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.realtime.connection_manager import ConnectionManager
from infrastructure.realtime.membership_cache import MembershipCache


logger = get_logger(__name__)


UNAUTHORIZED_CLOSE_CODE = 4001
UNAUTHORIZED_CLOSE_REASON = "Unauthorized"


class RealtimeService:
    def __init__(
        self,
        *,
        uow_factory: Callable[..., AbstractUnitOfWork],
        identity: IdentityProviderPort,
        connections: ConnectionManager,
        membership: MembershipCache,
    ) -> None:
        self._uow_factory = uow_factory
        self._identity = identity
        self._conn = connections
        self._membership = membership

    # Connection lifecycle management
    async def connect(self, ws: WebSocket, user_id: Optional[str], group_id: Optional[str]) -> bool:
        """Authenticate an accepted socket and register it for its group.

        Returns False (after closing the socket with 4001) when the user
        is unknown, the group does not exist or the user is not a member.
        Which check failed is logged but never sent to the client.
        """
        if not user_id:
            raise MissingParameterException("userId")
        if not group_id:
            raise MissingParameterException("groupId")

        try:
            display_name, members = await self._authenticate(user_id, group_id)
        except BusinessException as exc:
            logger.info(
                "ws_auth_rejected",
                user_id=user_id,
                group_id=group_id,
                reason=exc.error_type,
            )
            await self._close_unauthorized(ws)
            return False
        except Exception as exc:
            logger.error(
                "ws_auth_failed",
                user_id=user_id,
                group_id=group_id,
                error=str(exc),
                exc_info=True,
            )
            await self._close_unauthorized(ws)
            return False

        # No await from here on: the three writes land together.
        self._membership.upsert_user(user_id, display_name)
        self._membership.replace_members(group_id, members)
        self._conn.add(ws, user_id, group_id)
        logger.info("user_connected", user_id=user_id, group_id=group_id, connections=len(self._conn))
        return True

    async def disconnect(self, ws: WebSocket) -> None:
        """Forget a socket and its user. Safe to call more than once."""
        conn = self._conn.remove(ws)
        if conn is None:
            return
        self._membership.remove_user(conn.user_id)
        self._membership.remove_member(conn.group_id, conn.user_id)
        logger.info("user_disconnected", user_id=conn.user_id, group_id=conn.group_id)

    # Message ingress
    async def handle_text(self, ws: WebSocket, user_id: str, group_id: str, text: str) -> Optional[ChatMessage]:
        """Record and broadcast one text frame from an authenticated socket."""
        user = self._membership.get_user(user_id)
        if user is None:
            logger.info("ws_message_rejected", user_id=user_id, group_id=group_id)
            await self._close_unauthorized(ws)
            return None

        body = (text or "").strip()
        if not body:
            return None

        message = ChatMessage(user_id=user_id, display_name=user.display_name, body=body)
        await self.publish(group_id, message)
        return message

    async def publish(self, group_id: str, message: ChatMessage) -> int:
        """Append message to the group's durable history, then broadcast it.

        A failed append is logged and does not stop the broadcast; live
        clients may then see a message that was never stored.
        """
        try:
            async with self._uow_factory() as uow:
                await uow.group_repository.append_message(group_id, message)
        except Exception as exc:
            logger.error(
                "message_persist_failed",
                group_id=group_id,
                user_id=message.user_id,
                error=str(exc),
                exc_info=not isinstance(exc, BusinessException),
            )
        return await self.broadcast(group_id, message)

    async def broadcast(self, group_id: str, message: ChatMessage) -> int:
        payload = ChatMessageDTO.from_entity(message).to_wire()
        delivered = await self._conn.broadcast_group(
            group_id,
            payload,
            members=self._membership.members(group_id),
        )
        logger.info("message_broadcast", group_id=group_id, user_id=message.user_id, delivered=delivered)
        return delivered

    # Lookups for other services
    def connected_user(self, user_id: str) -> Optional[ConnectedUser]:
        return self._membership.get_user(user_id)

    # -------------------- Helper methods --------------------
    async def _authenticate(self, user_id: str, group_id: str) -> tuple[str, list[str]]:
        identity_user = await self._identity.get_user(user_id)
        if identity_user is None:
            raise UnauthorizedException(user_id=user_id)

        async with self._uow_factory(readonly=True) as uow:
            group = await uow.group_repository.get_by_id(group_id, include_messages=False)
        if group is None:
            raise GroupNotFoundException(group_id)
        if not group.has_member(user_id):
            raise NotGroupMemberException(group_id, user_id)
        return identity_user.display_name, list(group.members)

    @staticmethod
    async def _close_unauthorized(ws: WebSocket) -> None:
        if ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await ws.close(code=UNAUTHORIZED_CLOSE_CODE, reason=UNAUTHORIZED_CLOSE_REASON)
        except RuntimeError as exc:
            # 客户端已断开时 close 会抛出 RuntimeError
            logger.debug("ws_close_failed", error=str(exc))
