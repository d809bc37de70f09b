"""WebSocket route for group chat.

Clients connect to ``/message?userId=..&groupId=..``. The socket is
accepted first so that authentication failures can be reported with the
application close code 4001; afterwards every text frame is a chat
message for the group the socket authenticated for.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from api.dependencies import get_realtime_service_from_ws
from application.services.realtime_service import RealtimeService
from core.logging_config import get_logger
from domain.common.exceptions import MissingParameterException


logger = get_logger(__name__)


router = APIRouter(tags=["WebSocket"])


MISSING_PARAMETER_CLOSE_CODE = 1008


def _frame_text(message: dict) -> Optional[str]:
    """Extract the payload of a websocket.receive message as text."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is not None:
        return data.decode("utf-8", errors="replace")
    return None


@router.websocket("/message")
async def message_socket(
    ws: WebSocket,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    group_id: Optional[str] = Query(default=None, alias="groupId"),
    rt: RealtimeService = Depends(get_realtime_service_from_ws),
) -> None:
    await ws.accept()
    try:
        if not await rt.connect(ws, user_id, group_id):
            return
    except MissingParameterException as exc:
        logger.info("ws_missing_parameter", field=exc.field)
        await ws.close(code=MISSING_PARAMETER_CLOSE_CODE, reason=exc.message)
        return

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = _frame_text(message)
            if text is None:
                continue
            await rt.handle_text(ws, user_id, group_id, text)
            if ws.application_state == WebSocketState.DISCONNECTED:
                # handle_text closed the socket (user no longer authenticated)
                break
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.error("ws_error", user_id=user_id, group_id=group_id, error=str(exc), exc_info=True)
    finally:
        await rt.disconnect(ws)
