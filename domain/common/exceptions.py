"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class MissingParameterException(BusinessException):
    def __init__(self, field: str):
        super().__init__(
            code=BusinessCode.PARAM_MISSING,
            message=f"{field} is required",
            error_type="MissingParameter",
            field=field,
        )


class UnauthorizedException(BusinessException):
    """身份或成员校验失败"""

    def __init__(self, message: str = "Unauthorized", *, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message,
            error_type="Unauthorized",
            details=details,
        )


class NotGroupMemberException(BusinessException):
    def __init__(self, group_id: str, user_id: str):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message="User not joined the group",
            error_type="NotGroupMember",
            details={"group_id": group_id, "user_id": user_id},
        )


class GroupNotFoundException(BusinessException):
    def __init__(self, group_id: Optional[str] = None):
        details = {"group_id": group_id} if group_id else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Group does not exist",
            error_type="GroupNotFound",
            details=details,
        )


class UpstreamFailureException(BusinessException):
    """外部服务（身份提供方、文档存储、AI 服务）调用失败"""

    def __init__(self, service: str, reason: Optional[str] = None):
        details = {"service": service}
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.UPSTREAM_ERROR,
            message=f"Upstream service '{service}' failed",
            error_type="UpstreamFailure",
            details=details,
        )
