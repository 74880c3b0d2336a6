"""领域错误类型。

服务层只抛出这里定义的错误；它们继承协议异常，
因此 HTTP 层沿用统一异常处理器渲染，实时通道则转换为 error 事件。
"""

from typing import Any

from fastapi import HTTPException, status


class BoardError(HTTPException):
    """领域错误基类。"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    default_message = "bad request"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        if details:
            detail: Any = {"code": self.code, "message": self.message, "details": details}
        else:
            detail = self.message
        super().__init__(status_code=type(self).status_code, detail=detail)

    def to_dict(self) -> dict[str, Any]:
        """转换为实时通道可发送的错误载荷。"""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(BoardError):
    """实体不存在。"""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "not found"


class Forbidden(BoardError):
    """授权拒绝或归属校验失败。"""

    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "forbidden"


class ValidationFailed(BoardError):
    """输入不合法，例如未知列或负责人不是成员。"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"
    default_message = "validation failed"


class Conflict(BoardError):
    """请求与当前数据状态冲突，例如重复邀请。"""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "conflict"
