"""
AI completion provider port.
"""
from __future__ import annotations

from typing import List, Literal, Protocol, TypedDict


class TranscriptTurn(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionPort(Protocol):
    """Turn a chat transcript into a single reply string.

    Implementations return "" when the provider yields no content and
    raise UpstreamFailureException on any provider failure.
    """

    async def complete(self, messages: List[TranscriptTurn]) -> str: ...


__all__ = ["TranscriptTurn", "CompletionPort"]
