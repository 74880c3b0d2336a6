"""ORM 模型导出集合。"""

from teamboard_api.models.audit import AuditLog
from teamboard_api.models.project import Board, Project
from teamboard_api.models.task import Attachment, Comment, Task
from teamboard_api.models.user import User
from teamboard_api.models.workspace import Workspace, WorkspaceMembership

__all__ = [
    "Attachment",
    "AuditLog",
    "Board",
    "Comment",
    "Project",
    "Task",
    "User",
    "Workspace",
    "WorkspaceMembership",
]
