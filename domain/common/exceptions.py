"""领域异常基类。

领域层只抛出携带业务码的异常，HTTP 状态映射与响应包装由 core.exceptions 负责，
领域代码不依赖 core。
"""
from __future__ import annotations

from typing import Any, Optional

from shared.codes import BusinessCode


class BusinessException(Exception):
    """带业务码的异常；message 面向调用方，可直接写入订单备注或回调响应。"""

    error_type = "BusinessError"

    def __init__(
        self,
        code: int,
        message: str,
        error_type: Optional[str] = None,
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(message)

    def log_fields(self) -> dict[str, Any]:
        """结构化日志字段（不含 details，details 可能带回调原文）。"""
        return {"code": int(self.code), "error_type": self.error_type, "error": self.message}


class DomainValidationException(BusinessException):
    """实体不变量被破坏，例如订单金额为负。"""

    error_type = "DomainValidationError"

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(BusinessCode.PARAM_VALIDATION_ERROR, message, details=details, field=field)
