"""应用中间件注册。"""

import logging
from time import perf_counter
import uuid

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next):
    """注入请求追踪 ID，并通过响应头返回。

    上游网关已透传 X-Request-Id 时沿用，便于跨服务串联日志。
    """
    incoming = (request.headers.get("x-request-id") or "").strip()
    request.state.request_id = incoming[:64] or str(uuid.uuid4())
    request.state.request_started_at = perf_counter()
    response = await call_next(request)
    elapsed_ms = round((perf_counter() - request.state.request_started_at) * 1000, 2)
    response.headers["X-Request-Id"] = request.state.request_id
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.debug(
        "%s %s -> %s in %sms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.state.request_id,
    )
    return response


def register_middlewares(app: FastAPI) -> None:
    """集中注册中间件。"""
    app.middleware("http")(request_id_middleware)
