"""在线状态与临时信号。

在线用户直接由房间登记表推导；输入中、光标、聚焦等信号
每个 (房间, 用户, 类型) 只保留最新一条，不排队也不落库。
信号按服务端接收顺序编号；客户端 sent_at 只用于丢弃同一连接上乱序到达的旧信号。
"""

from dataclasses import dataclass
import itertools
from typing import Any
from uuid import UUID

from teamboard_api.realtime.registry import RoomRegistry, board_room
from teamboard_api.schemas.responses import UserSummaryData

SIGNAL_KINDS = frozenset({"typing", "cursor", "focus"})


@dataclass(frozen=True)
class PresenceSignal:
    """一条临时信号。"""

    room: str
    user_id: UUID
    kind: str
    payload: dict[str, Any]
    seq: int
    sid: str | None = None
    sent_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": str(self.user_id), "kind": self.kind, **self.payload}


class PresenceTracker:
    """房间在线用户与临时信号跟踪。"""

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry
        self._signals: dict[tuple[str, UUID, str], PresenceSignal] = {}
        self._seq = itertools.count(1)

    def room_users(self, room: str) -> list[UserSummaryData]:
        """房间内去重后的在线用户，按加入顺序。"""
        seen: dict[UUID, UserSummaryData] = {}
        for user in self.registry.members(room).values():
            seen.setdefault(user.id, user)
        return list(seen.values())

    def online_users(self, board_id: UUID | str) -> list[UserSummaryData]:
        """看板在线用户：至少有一个存活连接在看板房间中。"""
        return self.room_users(board_room(board_id))

    def record_signal(
        self,
        room: str,
        user_id: UUID,
        kind: str,
        payload: dict[str, Any],
        *,
        sid: str | None = None,
        sent_at: float | None = None,
    ) -> bool:
        """记录信号；同一连接上 sent_at 早于已保存信号时丢弃并返回 False。"""
        if kind not in SIGNAL_KINDS:
            raise ValueError(f"unknown signal kind: {kind}")
        key = (room, user_id, kind)
        current = self._signals.get(key)
        if (
            current is not None
            and sid is not None
            and current.sid == sid
            and sent_at is not None
            and current.sent_at is not None
            and sent_at < current.sent_at
        ):
            return False
        self._signals[key] = PresenceSignal(
            room=room,
            user_id=user_id,
            kind=kind,
            payload=payload,
            seq=next(self._seq),
            sid=sid,
            sent_at=sent_at,
        )
        return True

    def signals(self, room: str, *, exclude_user: UUID | None = None) -> list[PresenceSignal]:
        """房间内全部最新信号，按服务端接收顺序。"""
        found = [
            signal
            for (signal_room, user_id, _), signal in self._signals.items()
            if signal_room == room and user_id != exclude_user
        ]
        return sorted(found, key=lambda signal: signal.seq)

    def forget(self, room: str, user_id: UUID) -> None:
        """用户离开房间后清除其全部信号。"""
        for key in [key for key in self._signals if key[0] == room and key[1] == user_id]:
            del self._signals[key]

    def clear(self) -> None:
        self._signals.clear()
