"""实时通道装配。"""

from collections.abc import Callable
from dataclasses import dataclass
import logging

import socketio
from sqlalchemy.orm import Session

from teamboard_api.core.config import Settings
from teamboard_api.realtime.broadcaster import RoomBroadcaster
from teamboard_api.realtime.namespace import BoardNamespace
from teamboard_api.realtime.presence import PresenceTracker
from teamboard_api.realtime.registry import RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class RealtimeHub:
    """一个应用实例持有的实时通道组件。"""

    sio: socketio.AsyncServer
    registry: RoomRegistry
    presence: PresenceTracker
    broadcaster: RoomBroadcaster

    def reset(self) -> None:
        """清空房间与信号状态。"""
        self.presence.clear()
        self.registry.clear()


def create_sio_server(settings: Settings) -> socketio.AsyncServer:
    """创建 ASGI 模式的实时通道服务端。"""
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.socketio_cors_list,
        ping_interval=settings.socketio_ping_interval_seconds,
        logger=False,
        engineio_logger=False,
    )


def create_realtime_hub(settings: Settings, session_factory: Callable[[], Session]) -> RealtimeHub:
    """创建服务端、房间登记表、在线跟踪与广播器，并注册看板命名空间。"""
    sio = create_sio_server(settings)
    registry = RoomRegistry()
    presence = PresenceTracker(registry)
    broadcaster = RoomBroadcaster(registry, sio)
    sio.register_namespace(BoardNamespace(registry, presence, broadcaster, session_factory))
    logger.debug("realtime hub created (path=%s)", settings.socketio_path)
    return RealtimeHub(sio=sio, registry=registry, presence=presence, broadcaster=broadcaster)
