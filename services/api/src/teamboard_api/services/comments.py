"""任务评论服务。

任意工作空间成员可评论；编辑与删除仅限作者本人，
且作者仍需保有成员关系。
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from teamboard_api.errors import Forbidden
from teamboard_api.models.enums import BoardEventName
from teamboard_api.models.task import Comment
from teamboard_api.models.user import User
from teamboard_api.schemas.responses import CommentData, CommentDeletedData, UserSummaryData
from teamboard_api.services.authorization import authorize_comment, authorize_task
from teamboard_api.services.events import BoardEvent, EventSink

logger = logging.getLogger(__name__)


def comment_views(db: Session, comments: list[Comment]) -> list[CommentData]:
    """批量构造带作者摘要的评论视图。"""
    author_ids = {comment.author_id for comment in comments}
    authors: dict[UUID, User] = {}
    if author_ids:
        rows = db.execute(select(User).where(User.id.in_(author_ids))).scalars().all()
        authors = {user.id: user for user in rows}
    views = []
    for comment in comments:
        author = authors.get(comment.author_id)
        views.append(
            CommentData.model_validate(comment).model_copy(
                update={"author": UserSummaryData.model_validate(author) if author else None}
            )
        )
    return views


def _ensure_author(comment: Comment, actor_id: UUID) -> None:
    if comment.author_id != actor_id:
        raise Forbidden("only the author can change this comment")


def add_comment(
    db: Session,
    *,
    actor_id: UUID,
    task_id: UUID,
    content: str,
    events: EventSink,
) -> CommentData:
    """为任务添加评论。"""
    task, board, _ = authorize_task(db, user_id=actor_id, task_id=task_id)
    comment = Comment(task_id=task.id, author_id=actor_id, content=content)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    data = comment_views(db, [comment])[0]
    logger.info("comment %s added to task %s", comment.id, task.id)
    events.publish(BoardEvent.of(board.id, BoardEventName.COMMENT_ADDED, data))
    return data


def get_comments(db: Session, *, actor_id: UUID, task_id: UUID) -> list[CommentData]:
    """按创建时间升序返回任务评论。"""
    task, _, _ = authorize_task(db, user_id=actor_id, task_id=task_id)
    comments = (
        db.execute(select(Comment).where(Comment.task_id == task.id).order_by(Comment.created_at, Comment.id))
        .scalars()
        .all()
    )
    return comment_views(db, list(comments))


def update_comment(
    db: Session,
    *,
    actor_id: UUID,
    comment_id: UUID,
    content: str,
    events: EventSink,
) -> CommentData:
    """作者编辑自己的评论。"""
    comment, task, _ = authorize_comment(db, user_id=actor_id, comment_id=comment_id)
    _ensure_author(comment, actor_id)

    comment.content = content
    db.commit()
    db.refresh(comment)

    data = comment_views(db, [comment])[0]
    events.publish(BoardEvent.of(task.board_id, BoardEventName.COMMENT_UPDATED, data))
    return data


def delete_comment(db: Session, *, actor_id: UUID, comment_id: UUID, events: EventSink) -> CommentDeletedData:
    """作者删除自己的评论。"""
    comment, task, _ = authorize_comment(db, user_id=actor_id, comment_id=comment_id)
    _ensure_author(comment, actor_id)

    db.delete(comment)
    db.commit()

    data = CommentDeletedData(comment_id=comment_id, task_id=task.id)
    events.publish(BoardEvent.of(task.board_id, BoardEventName.COMMENT_DELETED, data))
    return data
