"""领域枚举定义。"""

from enum import StrEnum


class WorkspaceRole(StrEnum):
    """工作空间角色，能力严格递减：ADMIN ⊇ MEMBER ⊇ VIEWER。"""

    ADMIN = "ADMIN"  # 管理员，可维护工作空间结构与成员。
    MEMBER = "MEMBER"  # 普通成员，可增删改移任务。
    VIEWER = "VIEWER"  # 只读成员。

    @property
    def rank(self) -> int:
        """返回角色能力等级，数值越大能力越强。"""
        return _ROLE_RANK[self]

    def covers(self, required: "WorkspaceRole") -> bool:
        """判断当前角色是否满足最低角色要求。"""
        return self.rank >= required.rank


_ROLE_RANK = {
    WorkspaceRole.VIEWER: 10,
    WorkspaceRole.MEMBER: 20,
    WorkspaceRole.ADMIN: 30,
}


class TaskPriority(StrEnum):
    """任务优先级。"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class BoardEventName(StrEnum):
    """看板房间广播的规范状态事件名。"""

    TASK_CREATED = "taskCreated"
    TASK_UPDATED = "taskUpdated"
    TASK_MOVED = "taskMoved"
    TASK_DELETED = "taskDeleted"
    COMMENT_ADDED = "commentAdded"
    COMMENT_UPDATED = "commentUpdated"
    COMMENT_DELETED = "commentDeleted"
    BOARD_UPDATED = "boardUpdated"
