"""
统一响应包装

所有 JSON 接口（含处理方 webhook 的应答）都返回 `{code, message, data, error}`。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


class ErrorDetail(BaseModel):
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """UTC ISO8601，以 Z 结尾"""
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[T]):
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Response:
    """
    创建错误响应

    Args:
        code: 业务码（BusinessCode / PaymentCode）
        message: 面向调用方的错误消息
        error_type: 异常类型名
        details: 附加信息，不要放入回调原文或签名
        field: 出错字段
        request_id: 请求ID，便于与日志对应
    """
    return Response(
        code=code,
        message=message,
        error=ErrorDetail(type=error_type, details=details, field=field, request_id=request_id),
    )


def error_json(status_code: int, response: Response, headers: Optional[dict] = None) -> JSONResponse:
    """把错误响应序列化为 JSONResponse（异常处理器与 webhook 路由共用）。"""
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"), headers=headers)
