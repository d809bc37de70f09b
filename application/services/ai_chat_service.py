"""
AI 对话应用服务 - 将 AI 回复作为普通群消息记录并广播
"""
from __future__ import annotations

from typing import List

from application.dto import AIChatDataDTO, AIChatRequestDTO
from application.ports.completion import CompletionPort, TranscriptTurn
from application.services.realtime_service import RealtimeService
from core.logging_config import get_logger
from domain.chat.entity import ChatMessage
from domain.common.exceptions import UnauthorizedException


logger = get_logger(__name__)


def build_transcript(data: AIChatDataDTO, system_prompt: str) -> List[TranscriptTurn]:
    """系统提示 + 历史消息（全部作为 user 轮次）+ 本次提问"""
    turns: List[TranscriptTurn] = [{"role": "system", "content": system_prompt}]
    # 历史中 AI 的回复同样按 user 轮次传入
    turns.extend({"role": "user", "content": item.message or ""} for item in data.messages)
    turns.append({"role": "user", "content": data.query})
    return turns


class AIChatService:
    """AI 对话：仅对持有活跃 WebSocket 连接的用户开放"""

    def __init__(self, *, realtime: RealtimeService, completion: CompletionPort, system_prompt: str) -> None:
        self._realtime = realtime
        self._completion = completion
        self._system_prompt = system_prompt

    async def chat(self, request: AIChatRequestDTO) -> ChatMessage:
        if self._realtime.connected_user(request.user_id) is None:
            raise UnauthorizedException("Unauthenticated", user_id=request.user_id)

        transcript = build_transcript(request.data, self._system_prompt)
        # 失败时抛出 UpstreamFailureException，不记录也不广播
        reply = await self._completion.complete(transcript)

        # 等待 AI 回复期间用户可能已断开
        user = self._realtime.connected_user(request.user_id)
        if user is None:
            logger.info("ai_chat_user_gone", user_id=request.user_id, group_id=request.group_id)
            raise UnauthorizedException("Unauthenticated", user_id=request.user_id)

        message = ChatMessage(
            user_id=user.user_id,
            display_name=user.display_name,
            body=reply,
            query=request.data.query,
        )
        await self._realtime.publish(request.group_id, message)
        logger.info(
            "ai_chat_completed",
            user_id=request.user_id,
            group_id=request.group_id,
            transcript_turns=len(transcript),
            reply_chars=len(reply),
        )
        return message
