"""
Request logging middleware
请求日志中间件 - 记录每个HTTP请求的方法、路径、状态码和耗时
"""

import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def client_address(request: Request) -> str:
    """优先取反向代理转发的地址"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class LoggingMiddleware(BaseHTTPMiddleware):
    """HTTP请求日志；WebSocket 连接不经过此中间件"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        route = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {route} from {client_address(request)} "
                         f"after {time.perf_counter() - started:.3f}s: {e}")
            raise

        elapsed = time.perf_counter() - started
        status = response.status_code
        if status >= 500:
            logger.error(f"{route} -> {status} in {elapsed:.3f}s (server error)")
        elif status >= 400:
            logger.warning(f"{route} -> {status} in {elapsed:.3f}s from {client_address(request)}")
        else:
            logger.info(f"{route} -> {status} in {elapsed:.3f}s")

        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        return response
