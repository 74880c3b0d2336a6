"""工作空间角色授权。

所有看板读写都先解析资源所属工作空间，再按最低角色放行：
项目 -> 工作空间，看板 -> 项目 -> 工作空间，任务 -> 看板，评论 -> 任务。
授权判断只读数据库，不产生任何写入。
"""

from dataclasses import dataclass
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard_api.errors import Forbidden, NotFound
from teamboard_api.models.enums import WorkspaceRole
from teamboard_api.models.project import Board, Project
from teamboard_api.models.task import Attachment, Comment, Task
from teamboard_api.models.workspace import Workspace, WorkspaceMembership

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGrant:
    """授权结果。"""

    # 是否放行；授权失败时直接抛错，因此返回值中恒为 True。
    allow: bool
    # 当前用户在工作空间中的角色。
    role: WorkspaceRole
    # 资源所属工作空间。
    workspace: Workspace


def get_workspace_membership(
    db: Session,
    *,
    workspace_id: UUID,
    user_id: UUID,
) -> WorkspaceMembership | None:
    """查询用户在工作空间中的成员关系。"""
    return (
        db.execute(
            select(WorkspaceMembership)
            .where(WorkspaceMembership.workspace_id == workspace_id)
            .where(WorkspaceMembership.user_id == user_id)
        )
        .scalar_one_or_none()
    )


def resolve_role(db: Session, *, user_id: UUID, workspace_id: UUID) -> WorkspaceRole | None:
    """返回用户在工作空间中的角色，非成员返回 None。"""
    membership = get_workspace_membership(db, workspace_id=workspace_id, user_id=user_id)
    if membership is None:
        return None
    try:
        return WorkspaceRole(membership.role)
    except ValueError:
        logger.warning(
            "unknown workspace role %r for user %s in workspace %s", membership.role, user_id, workspace_id
        )
        return None


def authorize(
    db: Session,
    *,
    user_id: UUID,
    workspace_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> AccessGrant:
    """校验用户在工作空间中至少具备 min_role。

    判定规则：
    1. 工作空间必须存在，否则 NotFound。
    2. 没有成员关系或角色低于 min_role 时 Forbidden。
    """
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFound("workspace not found")

    role = resolve_role(db, user_id=user_id, workspace_id=workspace_id)
    if role is None or not role.covers(min_role):
        logger.info(
            "access denied: user=%s workspace=%s role=%s required=%s", user_id, workspace_id, role, min_role
        )
        raise Forbidden()
    return AccessGrant(allow=True, role=role, workspace=workspace)


def ensure_workspace_creator(workspace: Workspace, user_id: UUID) -> None:
    """仅工作空间创建者可执行的操作（删除工作空间），与角色无关。"""
    if workspace.created_by != user_id:
        raise Forbidden("only the workspace creator can do this")


def authorize_project(
    db: Session,
    *,
    user_id: UUID,
    project_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> tuple[Project, AccessGrant]:
    """按项目所属工作空间授权。"""
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("project not found")
    grant = authorize(db, user_id=user_id, workspace_id=project.workspace_id, min_role=min_role)
    return project, grant


def authorize_board(
    db: Session,
    *,
    user_id: UUID,
    board_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> tuple[Board, AccessGrant]:
    """按看板所属工作空间授权。"""
    board = db.get(Board, board_id)
    if board is None:
        raise NotFound("board not found")
    project = db.get(Project, board.project_id)
    if project is None:
        # 项目已删除但看板残留，视同看板不存在。
        raise NotFound("board not found")
    grant = authorize(db, user_id=user_id, workspace_id=project.workspace_id, min_role=min_role)
    return board, grant


def authorize_task(
    db: Session,
    *,
    user_id: UUID,
    task_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> tuple[Task, Board, AccessGrant]:
    """按任务所属看板授权。"""
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound("task not found")
    board, grant = authorize_board(db, user_id=user_id, board_id=task.board_id, min_role=min_role)
    return task, board, grant


def authorize_comment(
    db: Session,
    *,
    user_id: UUID,
    comment_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> tuple[Comment, Task, AccessGrant]:
    """按评论所属任务授权。"""
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("comment not found")
    task, _, grant = authorize_task(db, user_id=user_id, task_id=comment.task_id, min_role=min_role)
    return comment, task, grant


def authorize_attachment(
    db: Session,
    *,
    user_id: UUID,
    attachment_id: UUID,
    min_role: WorkspaceRole = WorkspaceRole.VIEWER,
) -> tuple[Attachment, Task, AccessGrant]:
    """按附件所属任务授权。"""
    attachment = db.get(Attachment, attachment_id)
    if attachment is None:
        raise NotFound("attachment not found")
    task, _, grant = authorize_task(db, user_id=user_id, task_id=attachment.task_id, min_role=min_role)
    return attachment, task, grant
