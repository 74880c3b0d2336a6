"""房间广播器。

按房间登记表逐连接投递事件；单个连接投递失败只记录日志，
不会中断其余连接的投递，也不会影响已提交的业务变更。
"""

import logging
from typing import Any, Protocol
from uuid import UUID

from teamboard_api.realtime.registry import RoomRegistry, board_room
from teamboard_api.services.events import BoardEvent

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """实时传输层协议，与 socketio.AsyncServer.emit 签名兼容。"""

    async def emit(self, event: str, data: Any = None, to: str | None = None, namespace: str | None = None) -> Any: ...


class RoomBroadcaster:
    """向房间内全部连接投递事件。"""

    def __init__(self, registry: RoomRegistry, transport: Transport, namespace: str = "/") -> None:
        self.registry = registry
        self.transport = transport
        self.namespace = namespace

    async def to_sid(self, sid: str, event: str, payload: Any) -> bool:
        """向单个连接投递，失败返回 False。"""
        try:
            await self.transport.emit(event, payload, to=sid, namespace=self.namespace)
        except Exception:
            logger.warning("failed to deliver %s to sid=%s", event, sid, exc_info=True)
            return False
        return True

    async def to_room(self, room: str, event: str, payload: Any, *, skip_sid: str | None = None) -> int:
        """向房间投递，返回成功投递的连接数。"""
        delivered = 0
        for sid in self.registry.members(room):
            if sid == skip_sid:
                continue
            if await self.to_sid(sid, event, payload):
                delivered += 1
        logger.debug("%s delivered to %s connection(s) in %s", event, delivered, room)
        return delivered

    async def broadcast(self, board_id: UUID | str, event: str, payload: Any) -> int:
        """向看板房间广播，发起者自身的连接同样会收到。"""
        return await self.to_room(board_room(board_id), event, payload)

    async def broadcast_event(self, event: BoardEvent) -> int:
        """广播服务层产生的看板事件。"""
        return await self.broadcast(event.board_id, str(event.name), event.payload)
