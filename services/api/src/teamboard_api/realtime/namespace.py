"""实时通道命名空间。

握手阶段校验访问令牌；加入看板或工作空间房间前按成员关系授权。
事件名使用连字符（如 join-board），通过覆盖 trigger_event 映射到处理方法。
处理方法中的领域错误转换为 error 事件与 ack 返回值，不会抛给传输层。
"""

import logging
import time
from collections.abc import Callable
from typing import Any
from uuid import UUID

import socketio
from fastapi import HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from teamboard_api.core.security import parse_access_token
from teamboard_api.dependencies import ensure_user
from teamboard_api.errors import BoardError, Forbidden, ValidationFailed
from teamboard_api.models.enums import WorkspaceRole
from teamboard_api.realtime.broadcaster import RoomBroadcaster
from teamboard_api.realtime.presence import PresenceTracker
from teamboard_api.realtime.registry import RoomRegistry, board_room, workspace_room
from teamboard_api.schemas.responses import UserSummaryData
from teamboard_api.services.authorization import authorize, authorize_board
from teamboard_api.utils.response import utc_now_iso

logger = logging.getLogger(__name__)


def _uuid_arg(data: Any, *keys: str) -> UUID:
    """从事件参数中读取 UUID，兼容 snake_case 与 camelCase 键名，也接受裸字符串。"""
    raw: Any = data
    if isinstance(data, dict):
        raw = next((data[key] for key in keys if data.get(key)), None)
    try:
        return UUID(str(raw))
    except (TypeError, ValueError) as exc:
        raise ValidationFailed(f"{keys[0]} is required", field=keys[0]) from exc


def _optional_str(data: Any, *keys: str) -> str | None:
    if not isinstance(data, dict):
        return None
    value = next((data[key] for key in keys if data.get(key) is not None), None)
    return str(value) if value is not None else None


def _sent_at(data: Any) -> float | None:
    if not isinstance(data, dict):
        return None
    value = data.get("sent_at", data.get("sentAt"))
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed("sent_at must be a number", field="sent_at") from exc


class BoardNamespace(socketio.AsyncNamespace):
    """看板协作命名空间。"""

    def __init__(
        self,
        registry: RoomRegistry,
        presence: PresenceTracker,
        broadcaster: RoomBroadcaster,
        session_factory: Callable[[], Session],
        namespace: str = "/",
    ) -> None:
        super().__init__(namespace)
        self.registry = registry
        self.presence = presence
        self.broadcaster = broadcaster
        self.session_factory = session_factory

        self._event_handlers: dict[str, str] = {
            "join-board": "handle_join_board",
            "leave-board": "handle_leave_board",
            "join-workspace": "handle_join_workspace",
            "leave-workspace": "handle_leave_workspace",
            "typing-start": "handle_typing_start",
            "typing-stop": "handle_typing_stop",
            "cursor-move": "handle_cursor_move",
            "task-focus": "handle_task_focus",
            "task-unfocus": "handle_task_unfocus",
            "get-online-users": "handle_get_online_users",
            "ping": "handle_ping",
        }

    async def trigger_event(self, event: str, *args):
        """把连字符事件名路由到处理方法，并统一转换错误。"""
        handler_name = self._event_handlers.get(event)
        if handler_name is None:
            return await super().trigger_event(event, *args)

        sid = args[0]
        data = args[1] if len(args) > 1 else None
        try:
            return await getattr(self, handler_name)(sid, data)
        except BoardError as exc:
            logger.info("socket event %s rejected for sid=%s: %s", event, sid, exc.message)
            error = {"event": event, **exc.to_dict()}
        except Exception:
            logger.exception("socket event %s failed for sid=%s", event, sid)
            error = {"event": event, "code": "INTERNAL_ERROR", "message": "internal server error"}
        await self.broadcaster.to_sid(sid, "error", error)
        return {"ok": False, "error": error}

    # ------------------------------------------------------------------
    # 连接生命周期
    # ------------------------------------------------------------------

    def _authenticate(self, token: str) -> UserSummaryData:
        principal = parse_access_token(token)
        with self.session_factory() as db:
            user = ensure_user(db, principal)
            db.commit()
            return UserSummaryData.model_validate(user)

    async def on_connect(self, sid: str, environ: dict, auth: dict | None = None):
        """校验握手令牌并保存连接用户。"""
        token = auth.get("token") if isinstance(auth, dict) else None
        if not token:
            logger.warning("socket connect without token sid=%s", sid)
            raise ConnectionRefusedError("missing authentication token")
        try:
            user = await run_in_threadpool(self._authenticate, token)
        except HTTPException as exc:
            logger.warning("socket connect rejected sid=%s status=%s", sid, exc.status_code)
            raise ConnectionRefusedError("invalid or expired token") from exc

        await self.save_session(sid, {"user": user.model_dump(mode="json")})
        logger.info("socket connected sid=%s user=%s", sid, user.id)

    async def on_disconnect(self, sid: str, reason: Any = None):
        """断开时离开全部房间并通知同房间的其他连接。"""
        for room, user in self.registry.leave_all(sid):
            await self._after_leave(sid, room, user)
        logger.info("socket disconnected sid=%s reason=%s", sid, reason)

    async def _user(self, sid: str) -> UserSummaryData:
        session = await self.get_session(sid)
        raw = session.get("user") if session else None
        if not raw:
            raise Forbidden("connection is not authenticated")
        return UserSummaryData.model_validate(raw)

    async def _after_leave(self, sid: str, room: str, user: UserSummaryData) -> None:
        if self.registry.user_present(room, user.id):
            return
        self.presence.forget(room, user.id)
        kind, _, target_id = room.partition(":")
        if kind == "board":
            payload = {"board_id": target_id, "user": user.model_dump(mode="json")}
            await self.broadcaster.to_room(room, "user-left", payload, skip_sid=sid)
        else:
            payload = {"workspace_id": target_id, "user": user.model_dump(mode="json")}
            await self.broadcaster.to_room(room, "user-left-workspace", payload, skip_sid=sid)

    # ------------------------------------------------------------------
    # 房间
    # ------------------------------------------------------------------

    def _check_board(self, user_id: UUID, board_id: UUID) -> None:
        with self.session_factory() as db:
            authorize_board(db, user_id=user_id, board_id=board_id, min_role=WorkspaceRole.VIEWER)

    def _check_workspace(self, user_id: UUID, workspace_id: UUID) -> None:
        with self.session_factory() as db:
            authorize(db, user_id=user_id, workspace_id=workspace_id, min_role=WorkspaceRole.VIEWER)

    def _online_payload(self, board_id: UUID) -> dict[str, Any]:
        users = self.presence.online_users(board_id)
        return {"board_id": str(board_id), "users": [user.model_dump(mode="json") for user in users]}

    async def handle_join_board(self, sid: str, data: Any) -> dict[str, Any]:
        user = await self._user(sid)
        board_id = _uuid_arg(data, "board_id", "boardId")
        await run_in_threadpool(self._check_board, user.id, board_id)

        room = board_room(board_id)
        first = self.registry.join(sid, room, user)
        online = self._online_payload(board_id)
        # 回放房间内其他用户的最新临时信号。
        online["signals"] = [signal.to_dict() for signal in self.presence.signals(room, exclude_user=user.id)]
        await self.broadcaster.to_sid(sid, "joined-board", online)
        if first:
            payload = {"board_id": str(board_id), "user": user.model_dump(mode="json")}
            await self.broadcaster.to_room(room, "user-joined", payload, skip_sid=sid)
        logger.info("sid=%s user=%s joined %s", sid, user.id, room)
        return {"ok": True, **online}

    async def handle_leave_board(self, sid: str, data: Any) -> dict[str, Any]:
        board_id = _uuid_arg(data, "board_id", "boardId")
        room = board_room(board_id)
        user = self.registry.leave(sid, room)
        if user is not None:
            await self._after_leave(sid, room, user)
        return {"ok": True, "board_id": str(board_id)}

    async def handle_join_workspace(self, sid: str, data: Any) -> dict[str, Any]:
        user = await self._user(sid)
        workspace_id = _uuid_arg(data, "workspace_id", "workspaceId")
        await run_in_threadpool(self._check_workspace, user.id, workspace_id)

        room = workspace_room(workspace_id)
        first = self.registry.join(sid, room, user)
        users = [item.model_dump(mode="json") for item in self.presence.room_users(room)]
        await self.broadcaster.to_sid(sid, "joined-workspace", {"workspace_id": str(workspace_id), "users": users})
        if first:
            payload = {"workspace_id": str(workspace_id), "user": user.model_dump(mode="json")}
            await self.broadcaster.to_room(room, "user-joined-workspace", payload, skip_sid=sid)
        return {"ok": True, "workspace_id": str(workspace_id), "users": users}

    async def handle_leave_workspace(self, sid: str, data: Any) -> dict[str, Any]:
        workspace_id = _uuid_arg(data, "workspace_id", "workspaceId")
        room = workspace_room(workspace_id)
        user = self.registry.leave(sid, room)
        if user is not None:
            await self._after_leave(sid, room, user)
        return {"ok": True, "workspace_id": str(workspace_id)}

    async def handle_get_online_users(self, sid: str, data: Any) -> dict[str, Any]:
        user = await self._user(sid)
        board_id = _uuid_arg(data, "board_id", "boardId")
        if not self.registry.is_member(sid, board_room(board_id)):
            await run_in_threadpool(self._check_board, user.id, board_id)
        online = self._online_payload(board_id)
        await self.broadcaster.to_sid(sid, "online-users", online)
        return {"ok": True, **online}

    # ------------------------------------------------------------------
    # 临时信号
    # ------------------------------------------------------------------

    async def _relay_signal(
        self,
        sid: str,
        data: Any,
        *,
        kind: str,
        event: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """记录信号并转发给房间内除发送者外的连接。"""
        user = await self._user(sid)
        board_id = _uuid_arg(data, "board_id", "boardId")
        room = board_room(board_id)
        if not self.registry.is_member(sid, room):
            raise Forbidden("join the board before sending signals")

        accepted = self.presence.record_signal(room, user.id, kind, fields, sid=sid, sent_at=_sent_at(data))
        if not accepted:
            return {"ok": True, "stale": True}
        payload = {"board_id": str(board_id), "user": user.model_dump(mode="json"), **fields}
        await self.broadcaster.to_room(room, event, payload, skip_sid=sid)
        return {"ok": True}

    async def handle_typing_start(self, sid: str, data: Any) -> dict[str, Any]:
        fields = {"task_id": _optional_str(data, "task_id", "taskId"), "is_typing": True}
        return await self._relay_signal(sid, data, kind="typing", event="user-typing", fields=fields)

    async def handle_typing_stop(self, sid: str, data: Any) -> dict[str, Any]:
        fields = {"task_id": _optional_str(data, "task_id", "taskId"), "is_typing": False}
        return await self._relay_signal(sid, data, kind="typing", event="user-typing", fields=fields)

    async def handle_cursor_move(self, sid: str, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict) or "x" not in data or "y" not in data:
            raise ValidationFailed("cursor position requires x and y")
        try:
            fields = {"x": float(data["x"]), "y": float(data["y"])}
        except (TypeError, ValueError) as exc:
            raise ValidationFailed("cursor position must be numeric") from exc
        return await self._relay_signal(sid, data, kind="cursor", event="cursor-update", fields=fields)

    async def handle_task_focus(self, sid: str, data: Any) -> dict[str, Any]:
        fields = {"task_id": str(_uuid_arg(data, "task_id", "taskId")), "focused": True}
        return await self._relay_signal(sid, data, kind="focus", event="task-focused", fields=fields)

    async def handle_task_unfocus(self, sid: str, data: Any) -> dict[str, Any]:
        fields = {"task_id": str(_uuid_arg(data, "task_id", "taskId")), "focused": False}
        return await self._relay_signal(sid, data, kind="focus", event="task-unfocused", fields=fields)

    async def handle_ping(self, sid: str, data: Any) -> dict[str, Any]:
        payload = {"timestamp": utc_now_iso(), "server_time": time.time()}
        await self.broadcaster.to_sid(sid, "pong", payload)
        return {"ok": True, **payload}
