"""Clerk Backend API 客户端 - 实现 IdentityProviderPort"""
from typing import Optional
from urllib.parse import quote

import httpx

from application.ports.identity import IdentityUser
from core.logging_config import get_logger
from domain.common.exceptions import UpstreamFailureException

from .base import APIError, BaseAPIClient, NotFoundError


logger = get_logger(__name__)


class ClerkIdentityClient(BaseAPIClient):
    """通过 ``GET /users/{user_id}`` 解析用户身份"""

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        base_url: str = "https://api.clerk.com/v1",
        timeout: float = 10.0,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            auth_token=secret_key,
            transport=transport,
        )

    async def get_user(self, user_id: str) -> Optional[IdentityUser]:
        # 用户ID来自客户端，需整体转义为单个路径段；"." 与 ".." 会被解析为相对路径
        if not user_id or user_id.strip(".") == "":
            return None
        try:
            response = await self.get(f"users/{quote(user_id, safe='')}")
        except NotFoundError:
            return None
        except APIError as exc:
            # 格式非法的用户ID按“用户不存在”处理
            if exc.status_code in (400, 422):
                return None
            logger.warning("identity_lookup_failed", user_id=user_id, status_code=exc.status_code, error=str(exc))
            raise UpstreamFailureException("identity", str(exc)) from exc

        data = response.data if isinstance(response.data, dict) else {}
        return IdentityUser(
            id=str(data.get("id") or user_id),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
