"""
请求上下文中间件

为每个请求分配 request_id（可由上游 X-Request-ID 透传），绑定到 structlog
上下文并记录耗时。处理方回调携带卡片数据与签名，这里不记录请求体与查询串。
"""
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import get_logger


logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"
    QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip(request),
            method=request.method,
            path=request.url.path,
        )

        quiet = request.url.path in self.QUIET_PATHS
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error_type=type(exc).__name__, error=str(exc), exc_info=True)
            raise

        duration = time.perf_counter() - started
        response.headers[self.HEADER_NAME] = request_id
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        if not quiet:
            self._log(response.status_code, duration)
        return response

    @staticmethod
    def _log(status_code: int, duration: float) -> None:
        if status_code < 400:
            logger.info("request_completed", status_code=status_code, duration=duration)
        elif status_code < 500:
            logger.warning("request_client_error", status_code=status_code, duration=duration)
        else:
            logger.error("request_server_error", status_code=status_code, duration=duration)
