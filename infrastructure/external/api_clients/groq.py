"""Groq（OpenAI 兼容）Chat Completions 客户端 - 实现 CompletionPort"""
from typing import List, Optional

import httpx

from application.ports.completion import TranscriptTurn
from core.logging_config import get_logger
from domain.common.exceptions import UpstreamFailureException

from .base import APIError, BaseAPIClient


logger = get_logger(__name__)


class GroqCompletionClient(BaseAPIClient):
    """调用 ``POST /chat/completions``，取第一个 choice 的内容"""

    def __init__(
        self,
        api_key: Optional[str],
        model: Optional[str],
        *,
        base_url: str = "https://api.groq.com/openai/v1",
        temperature: float = 0.5,
        max_tokens: int = 1024,
        timeout: float = 120.0,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            auth_token=api_key,
            transport=transport,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, messages: List[TranscriptTurn]) -> str:
        if not self.model:
            raise UpstreamFailureException("completion", "model is not configured")
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
            "messages": list(messages),
        }
        try:
            response = await self.post("chat/completions", json=payload)
        except APIError as exc:
            logger.warning("completion_failed", model=self.model, status_code=exc.status_code, error=str(exc))
            raise UpstreamFailureException("completion", str(exc)) from exc

        return self._first_choice_content(response.data)

    @staticmethod
    def _first_choice_content(data) -> str:
        if not isinstance(data, dict):
            return ""
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return content if isinstance(content, str) else ""
