"""服务层能力导出集合。"""

from teamboard_api.services.audit import audit_log
from teamboard_api.services.authorization import (
    AccessGrant,
    authorize,
    authorize_board,
    authorize_comment,
    authorize_project,
    authorize_task,
    ensure_workspace_creator,
    resolve_role,
)
from teamboard_api.services.events import BackgroundEventSink, BoardEvent, DiscardEventSink, EventSink
from teamboard_api.services.positions import MovePlan, PositionedTask, append_position, plan_compact, plan_insert, plan_move

__all__ = [
    "AccessGrant",
    "BackgroundEventSink",
    "BoardEvent",
    "DiscardEventSink",
    "EventSink",
    "MovePlan",
    "PositionedTask",
    "append_position",
    "audit_log",
    "authorize",
    "authorize_board",
    "authorize_comment",
    "authorize_project",
    "authorize_task",
    "ensure_workspace_creator",
    "plan_compact",
    "plan_insert",
    "plan_move",
    "resolve_role",
]
