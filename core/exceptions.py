"""
全局异常处理器：业务码 -> HTTP 状态码映射
"""
import traceback
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette import status as http_status

from core.logging_config import get_logger
from core.response import error_json, error_response
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode, PaymentCode, is_payment_code


_STATUS_MAPPING = {
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,

    # 远端处理方不可用/超时
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.TIMEOUT: http_status.HTTP_504_GATEWAY_TIMEOUT,
    # 本地资源缺失
    PaymentCode.ORDER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    PaymentCode.CUSTOMER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    PaymentCode.TOKEN_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    # 订单当前状态不允许该操作
    PaymentCode.ORDER_NOT_PROCESSABLE: http_status.HTTP_409_CONFLICT,
    PaymentCode.SCHEDULE_FAILED: http_status.HTTP_503_SERVICE_UNAVAILABLE,
}

_HTTP_TO_CODE = {
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（签名/入站数据/退款等未列出的码默认400）。"""
    return _STATUS_MAPPING.get(code, http_status.HTTP_400_BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI):
    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        event = "payment_request_rejected" if is_payment_code(exc.code) else "business_request_rejected"
        logger.warning(event, status_code=status_code, **exc.log_fields())
        response = error_response(
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            request_id=_request_id(request),
        )
        return error_json(status_code, response)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理参数验证异常（只回传 loc/msg，不回显输入值）"""
        errors = exc.errors()
        first_error = errors[0] if errors else {}
        response = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first_error.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors]},
            field=".".join(str(loc) for loc in first_error.get("loc", [])[1:]),
            request_id=_request_id(request),
        )
        return error_json(http_status.HTTP_422_UNPROCESSABLE_ENTITY, response)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        response = error_response(
            code=_HTTP_TO_CODE.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            request_id=_request_id(request),
        )
        return error_json(exc.status_code, response, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """处理所有未捕获的异常"""
        request_id = _request_id(request)
        details = None
        if app.debug:
            details = {"exception": str(exc), "traceback": traceback.format_exc()}

        logger.error("unhandled_exception", request_id=request_id, error=str(exc), exc_info=True)
        response = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details=details,
            request_id=request_id,
        )
        return error_json(http_status.HTTP_500_INTERNAL_SERVER_ERROR, response)
