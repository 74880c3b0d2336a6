"""实时协作通道：房间登记、广播与在线状态。"""

from teamboard_api.realtime.broadcaster import RoomBroadcaster
from teamboard_api.realtime.presence import PresenceTracker
from teamboard_api.realtime.registry import RoomRegistry, board_room, workspace_room

__all__ = ["PresenceTracker", "RoomBroadcaster", "RoomRegistry", "board_room", "workspace_room"]
