"""
API依赖项 - 从 app.state 取出生命周期内构建的服务，解析请求体
"""
from typing import Callable, Type, TypeVar

from fastapi import Request, WebSocket
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from application.services.ai_chat_service import AIChatService
from application.services.group_service import GroupApplicationService
from application.services.realtime_service import RealtimeService
from core.config import settings


M = TypeVar("M", bound=BaseModel)


def _state_attr(state, name: str):
    value = getattr(state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Ensure lifespan sets app.state.{name}.")
    return value


def get_realtime_service(request: Request) -> RealtimeService:
    return _state_attr(request.app.state, "realtime_service")


def get_realtime_service_from_ws(ws: WebSocket) -> RealtimeService:
    return _state_attr(ws.app.state, "realtime_service")


def get_group_service(request: Request) -> GroupApplicationService:
    state = request.app.state
    return GroupApplicationService(
        uow_factory=_state_attr(state, "uow_factory"),
        identity=_state_attr(state, "identity_provider"),
    )


def get_ai_chat_service(request: Request) -> AIChatService:
    state = request.app.state
    return AIChatService(
        realtime=_state_attr(state, "realtime_service"),
        completion=_state_attr(state, "completion_provider"),
        system_prompt=settings.ai.system_prompt,
    )


def json_body(model: Type[M]) -> Callable:
    """按 JSON 解析请求体，不要求 Content-Type 为 application/json

    前端以纯文本提交 JSON 字符串，因此不能依赖 FastAPI 的默认 Body 解析。
    校验失败统一转换为 RequestValidationError，由全局处理器映射为 400/422。
    """

    async def _dependency(request: Request) -> M:
        raw = await request.body()
        try:
            return model.model_validate_json(raw or b"{}")
        except ValidationError as exc:
            errors = [{**err, "loc": ("body", *err.get("loc", ()))} for err in exc.errors(include_url=False)]
            raise RequestValidationError(errors, body=raw) from exc

    return _dependency
