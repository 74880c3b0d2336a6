"""房间成员登记。

记录 房间 -> {连接 sid: 用户摘要} 以及反向索引 sid -> 房间集合。
状态只存在于当前进程内存中，重启即丢失；客户端重连后需重新加入房间。
"""

from uuid import UUID

from teamboard_api.schemas.responses import UserSummaryData


def board_room(board_id: UUID | str) -> str:
    """看板房间名。"""
    return f"board:{board_id}"


def workspace_room(workspace_id: UUID | str) -> str:
    """工作空间房间名。"""
    return f"workspace:{workspace_id}"


class RoomRegistry:
    """进程内房间登记表。"""

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, UserSummaryData]] = {}
        self._sid_rooms: dict[str, set[str]] = {}

    def join(self, sid: str, room: str, user: UserSummaryData) -> bool:
        """连接加入房间；返回该用户是否是首次出现在房间中。"""
        members = self._rooms.setdefault(room, {})
        first_for_user = not any(member.id == user.id for member in members.values())
        members[sid] = user
        self._sid_rooms.setdefault(sid, set()).add(room)
        return first_for_user

    def leave(self, sid: str, room: str) -> UserSummaryData | None:
        """连接离开房间，返回离开的用户（未在房间中则为 None）。"""
        members = self._rooms.get(room)
        if not members or sid not in members:
            return None
        user = members.pop(sid)
        if not members:
            del self._rooms[room]
        rooms = self._sid_rooms.get(sid)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._sid_rooms[sid]
        return user

    def leave_all(self, sid: str) -> list[tuple[str, UserSummaryData]]:
        """连接断开时离开全部房间。"""
        left = []
        for room in sorted(self._sid_rooms.get(sid, set())):
            user = self.leave(sid, room)
            if user is not None:
                left.append((room, user))
        return left

    def members(self, room: str) -> dict[str, UserSummaryData]:
        """返回房间内 sid -> 用户摘要的快照。"""
        return dict(self._rooms.get(room, {}))

    def rooms_of(self, sid: str) -> set[str]:
        """返回连接所在房间集合的快照。"""
        return set(self._sid_rooms.get(sid, set()))

    def is_member(self, sid: str, room: str) -> bool:
        return sid in self._rooms.get(room, {})

    def user_present(self, room: str, user_id: UUID) -> bool:
        """用户是否仍有连接留在房间中。"""
        return any(member.id == user_id for member in self._rooms.get(room, {}).values())

    def clear(self) -> None:
        """清空全部登记（应用关闭或测试重置时调用）。"""
        self._rooms.clear()
        self._sid_rooms.clear()
