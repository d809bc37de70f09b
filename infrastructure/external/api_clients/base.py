"""
REST API客户端基类

提供外部服务（身份服务、AI 服务）共用的HTTP请求功能：
- 自动重试（tenacity，仅针对超时/网络错误/429/5xx）
- 错误分类
- 认证头
- 超时控制
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


class APIError(Exception):
    """API错误基类"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)

    def __str__(self):
        if self.status_code:
            return f"{self.message} | Status: {self.status_code}"
        return self.message


class AuthenticationError(APIError):
    """认证错误（密钥无效或无权限）"""


class NotFoundError(APIError):
    """资源未找到错误"""


class RetryableAPIError(APIError):
    """可重试的API错误（429 / 5xx）"""

    def __init__(self, message: str, status_code: int, response: APIResponse, retry_after: Optional[float] = None):
        super().__init__(message=message, status_code=status_code, response=response)
        self.retry_after = retry_after


RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class BaseAPIClient:
    """
    REST API客户端基类

    子类只需实现具体的业务调用；底层 httpx.AsyncClient 惰性创建并复用。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API基础URL
            timeout: 请求超时时间（秒）
            max_retries: 最大重试次数（不含首次请求）
            retry_delay: 重试基础延迟（秒），指数退避
            auth_token: Bearer 认证令牌
            transport: 自定义 httpx 传输层（测试时可注入 MockTransport）
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "GroupChat-Server/1.0",
        }
        if auth_token:
            self.default_headers["Authorization"] = f"Bearer {auth_token}"

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """关闭HTTP客户端"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _raise_for_status(response: APIResponse):
        """按状态码抛出分类错误"""
        error_map = {
            401: AuthenticationError,
            403: AuthenticationError,
            404: NotFoundError,
        }
        error_class = error_map.get(response.status_code, APIError)

        message = f"API request failed with status {response.status_code}"
        data = response.data
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error") or data.get("detail")
            if isinstance(detail, dict):
                detail = detail.get("message")
            if isinstance(detail, str) and detail:
                message = detail

        raise error_class(message=message, status_code=response.status_code, response=response)

    async def _send_once(self, method: str, url: str, **kwargs) -> APIResponse:
        start = time.perf_counter()
        response = await self.client.request(method, url, headers=self.default_headers, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000

        data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except json.JSONDecodeError:
                data = None

        api_response = APIResponse(
            status_code=response.status_code,
            data=data,
            raw_content=response.content,
            elapsed_ms=elapsed,
            request_id=response.headers.get("x-request-id"),
        )
        logger.debug("api_response method=%s url=%s status=%s elapsed_ms=%.1f", method, url, response.status_code, elapsed)

        if api_response.status_code in RETRY_STATUS_CODES:
            retry_after: Optional[float] = None
            if api_response.status_code == 429:
                try:
                    retry_after = float(response.headers.get("retry-after") or 0) or None
                except ValueError:
                    retry_after = None
                if retry_after:
                    await asyncio.sleep(retry_after)
            raise RetryableAPIError(
                message=f"Transient API error with status {api_response.status_code}",
                status_code=api_response.status_code,
                response=api_response,
                retry_after=retry_after,
            )

        if api_response.is_error:
            self._raise_for_status(api_response)
        return api_response

    async def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        """
        发送HTTP请求（带重试）

        Raises:
            APIError: 所有失败最终都以 APIError（或其子类）抛出
        """
        url = self._build_url(endpoint)
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=self.retry_delay * 8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableAPIError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise APIError(f"Request timeout after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise APIError(f"Network error: {exc}") from exc
        except RetryableAPIError as exc:
            raise APIError(exc.message, status_code=exc.status_code, response=exc.response) from exc

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        """GET请求"""
        return await self._request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        """POST请求"""
        return await self._request("POST", endpoint, **kwargs)
