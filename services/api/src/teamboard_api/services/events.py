"""看板事件与事件出口。

服务层在事务提交之后通过事件出口发布恰好一个规范状态事件，
事件出口负责把事件交给实时广播器，投递失败不影响已提交的变更。
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from fastapi import BackgroundTasks
from pydantic import BaseModel

from teamboard_api.models.enums import BoardEventName

if TYPE_CHECKING:
    from teamboard_api.realtime.broadcaster import RoomBroadcaster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardEvent:
    """看板房间事件。"""

    # 目标看板 ID。
    board_id: UUID
    # 事件名，例如 taskMoved。
    name: BoardEventName
    # 完整实体（删除事件为 ID 集合），已转换为可序列化结构。
    payload: dict[str, Any]

    @classmethod
    def of(cls, board_id: UUID, name: BoardEventName, data: BaseModel) -> "BoardEvent":
        """由响应结构构造事件，载荷与接口返回保持同一形态。"""
        return cls(board_id=board_id, name=name, payload=data.model_dump(mode="json"))


class EventSink(Protocol):
    """事件出口协议。"""

    def publish(self, event: BoardEvent) -> None: ...


class DiscardEventSink:
    """丢弃事件，用于未挂载实时通道的场景。"""

    def publish(self, event: BoardEvent) -> None:
        logger.debug("discarding %s for board %s", event.name, event.board_id)


class BackgroundEventSink:
    """借助请求后台任务在响应返回后广播事件。"""

    def __init__(self, background_tasks: BackgroundTasks, broadcaster: "RoomBroadcaster") -> None:
        self._background_tasks = background_tasks
        self._broadcaster = broadcaster

    def publish(self, event: BoardEvent) -> None:
        self._background_tasks.add_task(self._broadcaster.broadcast_event, event)
