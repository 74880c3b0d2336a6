"""项目与看板结构服务。

列集合保存在看板 JSON 字段上；移除仍有任务的列会被拒绝，
保证任务的 column_id 始终指向看板上存在的列。
"""

from collections.abc import Sequence
import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from teamboard_api.core.config import get_settings
from teamboard_api.errors import Conflict, Forbidden, NotFound, ValidationFailed
from teamboard_api.models.enums import BoardEventName, WorkspaceRole
from teamboard_api.models.project import DEFAULT_BOARD_COLUMNS, Board, Project
from teamboard_api.models.task import Attachment, Comment, Task
from teamboard_api.schemas.responses import BoardData
from teamboard_api.services.audit import audit_log
from teamboard_api.services.authorization import authorize, authorize_board, authorize_project
from teamboard_api.services.events import BoardEvent, EventSink

logger = logging.getLogger(__name__)


def normalize_columns(columns: Sequence[Any] | None) -> list[dict[str, Any]]:
    """按传入顺序重排列位次，缺省返回默认列集合。

    既接受请求结构对象，也接受 {id, title} 字典。
    """
    if not columns:
        return [dict(column) for column in DEFAULT_BOARD_COLUMNS]
    normalized = []
    for index, column in enumerate(columns):
        column_id = column["id"] if isinstance(column, dict) else column.id
        title = column["title"] if isinstance(column, dict) else column.title
        normalized.append({"id": str(column_id), "title": str(title), "position": index})
    ids = [column["id"] for column in normalized]
    if len(ids) != len(set(ids)):
        raise ValidationFailed("column ids must be unique")
    return normalized


def lock_board(db: Session, board_id: UUID) -> Board:
    """锁定看板行（SELECT ... FOR UPDATE）并返回最新状态。

    任务位次与列集合的写操作都先取得此锁，同一看板上的写入因此串行执行，
    加锁顺序固定为先看板、后任务行。
    """
    board = db.execute(
        select(Board).where(Board.id == board_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if board is None:
        raise NotFound("board not found")
    return board


def _column_task_counts(db: Session, board_id: UUID) -> dict[str, int]:
    rows = db.execute(
        select(Task.column_id, func.count(Task.id)).where(Task.board_id == board_id).group_by(Task.column_id)
    ).all()
    return {column_id: count for column_id, count in rows}


def _ensure_columns_removable(db: Session, board: Board, removed: set[str]) -> None:
    if not removed:
        return
    counts = _column_task_counts(db, board.id)
    occupied = sorted(column_id for column_id in removed if counts.get(column_id, 0) > 0)
    if occupied:
        raise Conflict("column still has tasks", columns=occupied)


def purge_boards(db: Session, board_ids: Select) -> None:
    """级联删除看板及其任务、评论、附件（不提交）。"""
    task_ids = select(Task.id).where(Task.board_id.in_(board_ids))
    db.execute(delete(Comment).where(Comment.task_id.in_(task_ids)))
    db.execute(delete(Attachment).where(Attachment.task_id.in_(task_ids)))
    db.execute(delete(Task).where(Task.board_id.in_(board_ids)))
    db.execute(delete(Board).where(Board.id.in_(board_ids)))


def purge_projects(db: Session, project_ids: Select) -> None:
    """级联删除项目及其全部看板（不提交）。"""
    purge_boards(db, select(Board.id).where(Board.project_id.in_(project_ids)))
    db.execute(delete(Project).where(Project.id.in_(project_ids)))


def _publish_board(events: EventSink, board: Board) -> BoardData:
    data = BoardData.model_validate(board)
    events.publish(BoardEvent.of(board.id, BoardEventName.BOARD_UPDATED, data))
    return data


def create_project(
    db: Session,
    *,
    actor_id: UUID,
    workspace_id: UUID,
    name: str,
    description: str | None = None,
    request: Request | None = None,
) -> tuple[Project, Board]:
    """创建项目并附带一个默认看板。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id, min_role=WorkspaceRole.MEMBER)
    project = Project(workspace_id=grant.workspace.id, name=name, description=description, created_by=actor_id)
    db.add(project)
    db.flush()

    board = Board(
        project_id=project.id,
        name=get_settings().default_board_name,
        columns=normalize_columns(None),
    )
    db.add(board)
    db.flush()

    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="project.create",
        resource_type="project",
        resource_id=str(project.id),
        after_json={"name": project.name, "board_id": str(board.id)},
    )
    db.commit()
    db.refresh(project)
    db.refresh(board)
    logger.info("project %s created in workspace %s", project.id, workspace_id)
    return project, board


def list_projects(db: Session, *, actor_id: UUID, workspace_id: UUID) -> list[Project]:
    """返回工作空间下的项目。"""
    authorize(db, user_id=actor_id, workspace_id=workspace_id)
    return list(
        db.execute(
            select(Project).where(Project.workspace_id == workspace_id).order_by(Project.created_at, Project.id)
        )
        .scalars()
        .all()
    )


def get_project(db: Session, *, actor_id: UUID, project_id: UUID) -> Project:
    """读取项目。"""
    project, _ = authorize_project(db, user_id=actor_id, project_id=project_id)
    return project


def update_project(
    db: Session,
    *,
    actor_id: UUID,
    project_id: UUID,
    changes: dict[str, Any],
    request: Request | None = None,
) -> Project:
    """更新项目名称或说明。"""
    project, grant = authorize_project(db, user_id=actor_id, project_id=project_id, min_role=WorkspaceRole.MEMBER)
    before = {"name": project.name, "description": project.description}
    if "name" in changes:
        if changes["name"] is None:
            raise ValidationFailed("name cannot be null", field="name")
        project.name = changes["name"]
    if "description" in changes:
        project.description = changes["description"]

    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="project.update",
        resource_type="project",
        resource_id=str(project.id),
        before_json=before,
        after_json={"name": project.name, "description": project.description},
    )
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, *, actor_id: UUID, project_id: UUID, request: Request | None = None) -> None:
    """删除项目：工作空间管理员或项目创建者可操作。"""
    project, grant = authorize_project(db, user_id=actor_id, project_id=project_id)
    is_creator = project.created_by == actor_id and grant.role.covers(WorkspaceRole.MEMBER)
    if not (grant.role.covers(WorkspaceRole.ADMIN) or is_creator):
        raise Forbidden()

    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="project.delete",
        resource_type="project",
        resource_id=str(project.id),
        before_json={"name": project.name},
    )
    purge_projects(db, select(Project.id).where(Project.id == project.id))
    db.commit()
    logger.info("project %s deleted by %s", project_id, actor_id)


def create_board(
    db: Session,
    *,
    actor_id: UUID,
    project_id: UUID,
    name: str,
    columns: Sequence[Any] | None = None,
    request: Request | None = None,
) -> Board:
    """在项目下创建看板。"""
    project, grant = authorize_project(db, user_id=actor_id, project_id=project_id, min_role=WorkspaceRole.MEMBER)
    board = Board(project_id=project.id, name=name, columns=normalize_columns(columns))
    db.add(board)
    db.flush()
    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="board.create",
        resource_type="board",
        resource_id=str(board.id),
        after_json={"name": board.name, "columns": board.column_ids()},
    )
    db.commit()
    db.refresh(board)
    return board


def list_boards(db: Session, *, actor_id: UUID, project_id: UUID) -> list[Board]:
    """返回项目下的看板。"""
    project, _ = authorize_project(db, user_id=actor_id, project_id=project_id)
    return list(
        db.execute(select(Board).where(Board.project_id == project.id).order_by(Board.created_at, Board.id))
        .scalars()
        .all()
    )


def get_board(db: Session, *, actor_id: UUID, board_id: UUID) -> Board:
    """读取看板。"""
    board, _ = authorize_board(db, user_id=actor_id, board_id=board_id)
    return board


def update_board(
    db: Session,
    *,
    actor_id: UUID,
    board_id: UUID,
    name: str,
    events: EventSink,
    request: Request | None = None,
) -> BoardData:
    """重命名看板。"""
    board, grant = authorize_board(db, user_id=actor_id, board_id=board_id, min_role=WorkspaceRole.MEMBER)
    before = {"name": board.name}
    board.name = name
    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="board.update",
        resource_type="board",
        resource_id=str(board.id),
        before_json=before,
        after_json={"name": name},
    )
    db.commit()
    db.refresh(board)
    return _publish_board(events, board)


def update_board_columns(
    db: Session,
    *,
    actor_id: UUID,
    board_id: UUID,
    columns: Sequence[Any],
    events: EventSink,
    request: Request | None = None,
) -> BoardData:
    """整体替换看板列集合，仍有任务的列不可移除。"""
    _, grant = authorize_board(db, user_id=actor_id, board_id=board_id, min_role=WorkspaceRole.ADMIN)
    normalized = normalize_columns(columns)
    try:
        board = lock_board(db, board_id)
        before = board.column_ids()
        removed = set(before) - {column["id"] for column in normalized}
        _ensure_columns_removable(db, board, removed)
    except Exception:
        db.rollback()
        raise

    board.columns = normalized
    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="board.columns.update",
        resource_type="board",
        resource_id=str(board.id),
        before_json={"columns": before},
        after_json={"columns": board.column_ids()},
    )
    db.commit()
    db.refresh(board)
    return _publish_board(events, board)


def delete_column(
    db: Session,
    *,
    actor_id: UUID,
    board_id: UUID,
    column_id: str,
    events: EventSink,
    request: Request | None = None,
) -> BoardData:
    """删除空列，其余列位次重新压紧。"""
    _, grant = authorize_board(db, user_id=actor_id, board_id=board_id, min_role=WorkspaceRole.ADMIN)
    try:
        board = lock_board(db, board_id)
        if not board.has_column(column_id):
            raise ValidationFailed("unknown column", column_id=column_id)
        _ensure_columns_removable(db, board, {column_id})
        if len(board.columns) == 1:
            raise ValidationFailed("board must keep at least one column")
    except Exception:
        db.rollback()
        raise

    remaining = sorted(
        (column for column in board.columns if column["id"] != column_id),
        key=lambda column: column.get("position", 0),
    )
    board.columns = normalize_columns(remaining)
    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="board.column.delete",
        resource_type="board",
        resource_id=str(board.id),
        before_json={"column_id": column_id},
    )
    db.commit()
    db.refresh(board)
    return _publish_board(events, board)


def delete_board(db: Session, *, actor_id: UUID, board_id: UUID, request: Request | None = None) -> None:
    """删除看板及其全部任务。"""
    board, grant = authorize_board(db, user_id=actor_id, board_id=board_id, min_role=WorkspaceRole.ADMIN)
    audit_log(
        db=db,
        request=request,
        workspace_id=grant.workspace.id,
        actor_user_id=actor_id,
        action="board.delete",
        resource_type="board",
        resource_id=str(board.id),
        before_json={"name": board.name},
    )
    purge_boards(db, select(Board.id).where(Board.id == board.id))
    db.commit()
    logger.info("board %s deleted by %s", board_id, actor_id)
