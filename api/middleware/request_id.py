"""
Request ID 中间件
生成或透传追踪ID，并绑定到 structlog 上下文
"""
import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# 透传的ID只接受常见字符，避免日志注入
_SAFE_ID = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """从请求头获取或生成 request_id，写入 request.state、contextvars 与响应头"""

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(self.HEADER_NAME) or ""
        request_id = incoming if _SAFE_ID.match(incoming) else str(uuid.uuid4())
        client_ip = client_ip_of(request)

        request.state.request_id = request_id
        request_id_var.set(request_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def client_ip_of(request: Request) -> str:
    """客户端IP：优先 X-Forwarded-For 的第一个地址，其次 X-Real-IP"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_request_id() -> Optional[str]:
    """当前请求的 request_id；不在请求上下文中返回 None"""
    return request_id_var.get()
