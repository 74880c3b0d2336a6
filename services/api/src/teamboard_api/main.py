"""FastAPI 应用入口点。

`app` 是挂载了实时通道的 ASGI 应用：/socket.io 请求交给实时服务端，
其余请求交给 FastAPI。
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
import logging

import socketio
from fastapi import FastAPI
from sqlalchemy.orm import Session

from teamboard_api.api.router import api_router
from teamboard_api.core.config import get_settings
from teamboard_api.db.session import SessionLocal
from teamboard_api.exceptions import register_exception_handlers
from teamboard_api.middlewares import register_middlewares
from teamboard_api.realtime.server import RealtimeHub, create_realtime_hub

settings = get_settings()
logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时初始化日志；关闭时清空房间与在线状态。"""
    configure_logging()
    logger.info("%s starting (env=%s)", settings.app_name, settings.app_env)
    yield
    hub: RealtimeHub = app.state.realtime
    hub.reset()
    logger.info("%s stopped, realtime rooms cleared", settings.app_name)


def create_app(session_factory: Callable[[], Session] = SessionLocal) -> FastAPI:
    """创建并配置 FastAPI 应用实例，并装配该实例专属的实时通道组件。"""
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "团队看板协作接口。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`。\n"
            "通过访问令牌进行认证，按工作空间角色（ADMIN/MEMBER/VIEWER）授权。\n"
            "看板变更提交后经实时通道广播到 `board:<id>` 房间。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "workspaces", "description": "工作空间生命周期与成员管理。"},
            {"name": "projects", "description": "项目管理。"},
            {"name": "boards", "description": "看板、列集合与在线用户。"},
            {"name": "tasks", "description": "任务增删改、移动与附件元数据。"},
            {"name": "comments", "description": "任务评论。"},
        ],
    )

    hub = create_realtime_hub(settings, session_factory)
    app.state.realtime = hub
    app.state.broadcaster = hub.broadcaster
    app.state.presence = hub.presence

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


def create_asgi_app(fastapi_app: FastAPI | None = None) -> socketio.ASGIApp:
    """用实时通道服务端包装 FastAPI 应用。"""
    fastapi_app = fastapi_app or create_app()
    return socketio.ASGIApp(
        fastapi_app.state.realtime.sio,
        other_asgi_app=fastapi_app,
        socketio_path=settings.socketio_path,
    )


app = create_asgi_app()
