"""
AI 对话路由 - 回复通过 WebSocket 广播到群组，HTTP 响应体为空
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from api.dependencies import get_ai_chat_service, json_body
from application.dto import AIChatRequestDTO
from application.services.ai_chat_service import AIChatService

router = APIRouter(tags=["AI 对话"])


@router.post("/chat", summary="向 AI 助手提问", status_code=200)
async def chat(
    payload: AIChatRequestDTO = Depends(json_body(AIChatRequestDTO)),
    service: AIChatService = Depends(get_ai_chat_service),
):
    """
    AI 对话

    - **userId**: 必须持有活跃的 WebSocket 连接
    - **groupId**: 回复广播到的群组
    - **data.messages**: 历史消息（可选）
    - **data.query**: 本次提问
    """
    await service.chat(payload)
    return Response(status_code=200)
