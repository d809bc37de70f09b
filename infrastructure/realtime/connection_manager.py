"""In-process WebSocket connection registry.

Keeps track of live sockets tagged with the (user_id, group_id) they
authenticated for, and provides the group-scoped broadcast used by the
realtime service. This process is the only broadcaster; there is no
cross-process fan-out.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from core.logging_config import get_logger


logger = get_logger(__name__)


@dataclass(eq=False)
class LiveConnection:
    websocket: WebSocket
    user_id: str
    group_id: str

    @property
    def is_open(self) -> bool:
        ws = self.websocket
        return (
            ws.client_state == WebSocketState.CONNECTED
            and ws.application_state == WebSocketState.CONNECTED
        )


class ConnectionManager:
    """Manage per-process WebSocket connections and their group tags."""

    def __init__(self) -> None:
        # id(websocket) -> LiveConnection
        self._connections: Dict[int, LiveConnection] = {}

    def add(self, ws: WebSocket, user_id: str, group_id: str) -> LiveConnection:
        conn = LiveConnection(websocket=ws, user_id=user_id, group_id=group_id)
        self._connections[id(ws)] = conn
        return conn

    def remove(self, ws: WebSocket) -> Optional[LiveConnection]:
        return self._connections.pop(id(ws), None)

    def snapshot(self) -> List[LiveConnection]:
        return list(self._connections.values())

    def __len__(self) -> int:
        return len(self._connections)

    async def broadcast_group(
        self,
        group_id: str,
        payload: dict[str, Any],
        *,
        members: Collection[str],
    ) -> int:
        """Send payload to every open connection of group_id whose user is in members.

        Iterates a snapshot taken up front; a connection that closes or is
        removed while the loop is suspended on a send simply fails the
        open-state check (or its send) and is skipped. Returns the number
        of successful deliveries.
        """
        targets = self.snapshot()
        if not targets:
            return 0
        text = json.dumps(payload, ensure_ascii=False)
        delivered = 0
        for conn in targets:
            if conn.group_id != group_id or conn.user_id not in members:
                continue
            if not conn.is_open:
                continue
            try:
                await conn.websocket.send_text(text)
            except Exception as exc:
                logger.warning(
                    "ws_send_failed",
                    group_id=group_id,
                    user_id=conn.user_id,
                    error=str(exc),
                )
                continue
            delivered += 1
        return delivered
