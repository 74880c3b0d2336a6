"""任务读写服务。

写操作统一流程：授权 -> 锁定看板行 -> 校验 -> 读取受影响列 -> 计算位次 -> 提交 -> 发布事件。
任一环节失败都会回滚，存储保持原状且不发布事件。
"""

from collections.abc import Iterable
from datetime import datetime
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from teamboard_api.errors import BoardError, NotFound, ValidationFailed
from teamboard_api.models.enums import BoardEventName, TaskPriority, WorkspaceRole
from teamboard_api.models.project import Board
from teamboard_api.models.task import Attachment, Comment, Task
from teamboard_api.schemas.responses import AttachmentData, TaskData, TaskDeletedData, TaskDetailData
from teamboard_api.services.authorization import (
    authorize_attachment,
    authorize_board,
    authorize_task,
    get_workspace_membership,
)
from teamboard_api.services.boards import lock_board
from teamboard_api.services.comments import comment_views
from teamboard_api.services.events import BoardEvent, EventSink
from teamboard_api.services.positions import PositionedTask, append_position, plan_compact, plan_insert, plan_move

logger = logging.getLogger(__name__)

# 允许部分更新的任务字段；位置与所在列只能通过移动接口变更。
_UPDATABLE_FIELDS = ("title", "description", "priority", "due_at", "assignee_id")
_REQUIRED_FIELDS = {"title", "priority"}


def _snapshot(tasks: Iterable[Task]) -> list[PositionedTask]:
    return [PositionedTask(id=task.id, position=task.position, created_at=task.created_at) for task in tasks]


def _lock_column(db: Session, *, board_id: UUID, column_id: str) -> list[Task]:
    """锁定并读取一列任务（SELECT ... FOR UPDATE）。"""
    stmt = (
        select(Task)
        .where(Task.board_id == board_id)
        .where(Task.column_id == column_id)
        .order_by(Task.position, Task.created_at, Task.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def _apply_writes(tasks: Iterable[Task], writes: dict[UUID, int]) -> None:
    for task in tasks:
        if task.id in writes:
            task.position = writes[task.id]


def _ensure_column(board: Board, column_id: str) -> None:
    if not board.has_column(column_id):
        raise ValidationFailed("unknown column", column_id=column_id)


def _ensure_assignee(db: Session, *, workspace_id: UUID, assignee_id: UUID | None) -> None:
    if assignee_id is None:
        return
    if get_workspace_membership(db, workspace_id=workspace_id, user_id=assignee_id) is None:
        raise ValidationFailed("assignee is not a workspace member", assignee_id=str(assignee_id))


def _counts(db: Session, model: type[Comment] | type[Attachment], task_ids: list[UUID]) -> dict[UUID, int]:
    if not task_ids:
        return {}
    rows = db.execute(
        select(model.task_id, func.count(model.id)).where(model.task_id.in_(task_ids)).group_by(model.task_id)
    ).all()
    return {task_id: count for task_id, count in rows}


def task_views(db: Session, tasks: list[Task]) -> list[TaskData]:
    """批量构造带评论数与附件数的任务视图。"""
    task_ids = [task.id for task in tasks]
    comment_counts = _counts(db, Comment, task_ids)
    attachment_counts = _counts(db, Attachment, task_ids)
    return [
        TaskData.model_validate(task).model_copy(
            update={
                "comment_count": comment_counts.get(task.id, 0),
                "attachment_count": attachment_counts.get(task.id, 0),
            }
        )
        for task in tasks
    ]


def task_view(db: Session, task: Task) -> TaskData:
    """构造单个任务视图。"""
    return task_views(db, [task])[0]


def _commit_or_rollback(db: Session, action: str) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("%s failed, transaction rolled back", action)
        raise


def create_task(
    db: Session,
    *,
    actor_id: UUID,
    board_id: UUID,
    column_id: str,
    title: str,
    events: EventSink,
    description: str | None = None,
    priority: str = TaskPriority.MEDIUM,
    due_at: datetime | None = None,
    assignee_id: UUID | None = None,
    position: int | None = None,
) -> TaskData:
    """在看板列中创建任务，缺省追加到列尾。"""
    board, grant = authorize_board(db, user_id=actor_id, board_id=board_id, min_role=WorkspaceRole.MEMBER)
    _ensure_assignee(db, workspace_id=grant.workspace.id, assignee_id=assignee_id)

    try:
        board = lock_board(db, board.id)
        _ensure_column(board, column_id)
        column = _lock_column(db, board_id=board.id, column_id=column_id)
        if position is None:
            final_position = append_position(_snapshot(column))
        else:
            final_position, writes = plan_insert(_snapshot(column), position)
            _apply_writes(column, writes)

        task = Task(
            board_id=board.id,
            column_id=column_id,
            title=title,
            description=description,
            priority=TaskPriority(priority),
            due_at=due_at,
            assignee_id=assignee_id,
            created_by=actor_id,
            position=final_position,
        )
        db.add(task)
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit_or_rollback(db, "create task")
    db.refresh(task)

    data = task_view(db, task)
    logger.info("task %s created on board %s column %s at %s", task.id, board.id, column_id, task.position)
    events.publish(BoardEvent.of(board.id, BoardEventName.TASK_CREATED, data))
    return data


def get_tasks_for_board(db: Session, *, actor_id: UUID, board_id: UUID) -> list[TaskData]:
    """按列顺序、列内位次返回看板全部任务。"""
    board, _ = authorize_board(db, user_id=actor_id, board_id=board_id)
    column_order = {column_id: index for index, column_id in enumerate(board.column_ids())}
    tasks = list(db.execute(select(Task).where(Task.board_id == board.id)).scalars().all())
    tasks.sort(
        key=lambda task: (
            column_order.get(task.column_id, len(column_order)),
            task.position,
            task.created_at.timestamp() if task.created_at else 0.0,
            str(task.id),
        )
    )
    return task_views(db, tasks)


def get_task(db: Session, *, actor_id: UUID, task_id: UUID) -> TaskDetailData:
    """返回任务详情，附带评论与附件元数据。"""
    task, _, _ = authorize_task(db, user_id=actor_id, task_id=task_id)
    comments = (
        db.execute(select(Comment).where(Comment.task_id == task.id).order_by(Comment.created_at, Comment.id))
        .scalars()
        .all()
    )
    attachments = (
        db.execute(select(Attachment).where(Attachment.task_id == task.id).order_by(Attachment.created_at))
        .scalars()
        .all()
    )
    base = task_view(db, task)
    return TaskDetailData(
        **base.model_dump(),
        comments=comment_views(db, list(comments)),
        attachments=[AttachmentData.model_validate(item) for item in attachments],
    )


def update_task(
    db: Session,
    *,
    actor_id: UUID,
    task_id: UUID,
    changes: dict[str, Any],
    events: EventSink,
) -> TaskData:
    """部分更新任务字段，不影响位次与所在列。"""
    task, board, grant = authorize_task(db, user_id=actor_id, task_id=task_id, min_role=WorkspaceRole.MEMBER)

    updates = {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS}
    for key in _REQUIRED_FIELDS & updates.keys():
        if updates[key] is None:
            raise ValidationFailed(f"{key} cannot be null", field=key)
    if "assignee_id" in updates and updates["assignee_id"] != task.assignee_id:
        _ensure_assignee(db, workspace_id=grant.workspace.id, assignee_id=updates["assignee_id"])
    if "priority" in updates:
        updates["priority"] = TaskPriority(updates["priority"])

    for key, value in updates.items():
        setattr(task, key, value)
    _commit_or_rollback(db, "update task")
    db.refresh(task)

    data = task_view(db, task)
    events.publish(BoardEvent.of(board.id, BoardEventName.TASK_UPDATED, data))
    return data


def move_task(
    db: Session,
    *,
    actor_id: UUID,
    task_id: UUID,
    column_id: str,
    position: int,
    events: EventSink,
) -> TaskData:
    """移动任务到目标列的指定位次。

    持有看板行锁后读取受影响列并计算位次；
    列与位次均未变化时不写库、不发布事件。
    """
    task, board, _ = authorize_task(db, user_id=actor_id, task_id=task_id, min_role=WorkspaceRole.MEMBER)

    try:
        board = lock_board(db, board.id)
        _ensure_column(board, column_id)
        # 持有看板锁后重读被移动任务，拿到真实所在列。
        mover = db.execute(
            select(Task).where(Task.id == task.id).with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if mover is None:
            raise NotFound("task not found")

        same_column = mover.column_id == column_id
        source = _lock_column(db, board_id=board.id, column_id=mover.column_id)
        dest = source if same_column else _lock_column(db, board_id=board.id, column_id=column_id)
        plan = plan_move(_snapshot(source), _snapshot(dest), mover.id, position, same_column=same_column)

        if plan.is_noop:
            db.rollback()
            logger.debug("task %s already at %s/%s, skip move", mover.id, column_id, plan.final_position)
            return task_view(db, mover)

        from_column = mover.column_id
        _apply_writes(source if same_column else [*source, *dest], plan.writes)
        mover.column_id = column_id
        mover.position = plan.final_position
        db.flush()
    except BoardError:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("move task %s failed, transaction rolled back", task_id)
        raise
    _commit_or_rollback(db, "move task")
    db.refresh(mover)

    data = task_view(db, mover)
    logger.info(
        "task %s moved %s -> %s at %s (%s positions rewritten)",
        mover.id,
        from_column,
        column_id,
        mover.position,
        len(plan.writes),
    )
    events.publish(BoardEvent.of(board.id, BoardEventName.TASK_MOVED, data))
    return data


def delete_task(db: Session, *, actor_id: UUID, task_id: UUID, events: EventSink) -> TaskDeletedData:
    """删除任务及其评论、附件，并压紧所在列。"""
    task, board, _ = authorize_task(db, user_id=actor_id, task_id=task_id, min_role=WorkspaceRole.MEMBER)

    try:
        lock_board(db, board.id)
        task = db.execute(
            select(Task).where(Task.id == task.id).with_for_update().execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if task is None:
            raise NotFound("task not found")
        column = _lock_column(db, board_id=board.id, column_id=task.column_id)
        db.execute(delete(Comment).where(Comment.task_id == task.id))
        db.execute(delete(Attachment).where(Attachment.task_id == task.id))
        remaining = [item for item in column if item.id != task.id]
        _apply_writes(remaining, plan_compact(_snapshot(remaining)))
        db.delete(task)
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit_or_rollback(db, "delete task")

    data = TaskDeletedData(task_id=task_id)
    logger.info("task %s deleted from board %s", task_id, board.id)
    events.publish(BoardEvent.of(board.id, BoardEventName.TASK_DELETED, data))
    return data


def add_attachment(
    db: Session,
    *,
    actor_id: UUID,
    task_id: UUID,
    filename: str,
    url: str,
    events: EventSink,
    size_bytes: int = 0,
    content_type: str | None = None,
) -> AttachmentData:
    """登记外部存储文件的附件元数据。"""
    task, board, _ = authorize_task(db, user_id=actor_id, task_id=task_id, min_role=WorkspaceRole.MEMBER)
    attachment = Attachment(
        task_id=task.id,
        uploaded_by=actor_id,
        filename=filename,
        url=url,
        size_bytes=size_bytes,
        content_type=content_type,
    )
    db.add(attachment)
    _commit_or_rollback(db, "add attachment")
    db.refresh(attachment)

    events.publish(BoardEvent.of(board.id, BoardEventName.TASK_UPDATED, task_view(db, task)))
    return AttachmentData.model_validate(attachment)


def delete_attachment(db: Session, *, actor_id: UUID, attachment_id: UUID, events: EventSink) -> TaskData:
    """删除附件元数据，返回刷新计数后的任务。"""
    attachment, task, _ = authorize_attachment(
        db, user_id=actor_id, attachment_id=attachment_id, min_role=WorkspaceRole.MEMBER
    )
    db.delete(attachment)
    _commit_or_rollback(db, "delete attachment")

    data = task_view(db, task)
    events.publish(BoardEvent.of(task.board_id, BoardEventName.TASK_UPDATED, data))
    return data
