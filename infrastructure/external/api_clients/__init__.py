"""
API客户端模块

提供与外部REST API集成的客户端实现
"""
from .base import BaseAPIClient, APIResponse, APIError, AuthenticationError, NotFoundError
from .clerk import ClerkIdentityClient
from .groq import GroqCompletionClient

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "ClerkIdentityClient",
    "GroqCompletionClient",
]
