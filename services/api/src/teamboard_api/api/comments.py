"""任务评论接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from teamboard_api.db.session import get_db
from teamboard_api.dependencies import get_event_sink, get_request_context
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import CommentData, CommentDeletedData
from teamboard_api.schemas.task import CommentCreateRequest, CommentUpdateRequest
from teamboard_api.services import comments as comment_service
from teamboard_api.utils.response import success

router = APIRouter(tags=["comments"])

_AUTH_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.get(
    "/tasks/{task_id}/comments",
    summary="查询任务评论",
    description="按创建时间升序返回。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[CommentData]],
    responses=_AUTH_ERRORS,
)
def list_comments(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """读取任务评论。"""
    data = comment_service.get_comments(db, actor_id=ctx.user_id, task_id=task_id)
    return success(request, [item.model_dump() for item in data])


@router.post(
    "/tasks/{task_id}/comments",
    summary="添加评论",
    description="任意工作空间成员可评论，广播 commentAdded。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CommentData],
    responses=_AUTH_ERRORS,
)
def add_comment(
    payload: CommentCreateRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """添加评论。"""
    data = comment_service.add_comment(
        db, actor_id=ctx.user_id, task_id=task_id, content=payload.content, events=events
    )
    return success(request, data.model_dump())


@router.patch(
    "/comments/{comment_id}",
    summary="编辑评论",
    description="仅作者本人可编辑，广播 commentUpdated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CommentData],
    responses=_AUTH_ERRORS,
)
def update_comment(
    payload: CommentUpdateRequest,
    request: Request,
    comment_id: UUID = Path(..., description="评论 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """编辑评论。"""
    data = comment_service.update_comment(
        db, actor_id=ctx.user_id, comment_id=comment_id, content=payload.content, events=events
    )
    return success(request, data.model_dump())


@router.delete(
    "/comments/{comment_id}",
    summary="删除评论",
    description="仅作者本人可删除，广播 commentDeleted。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CommentDeletedData],
    responses=_AUTH_ERRORS,
)
def delete_comment(
    request: Request,
    comment_id: UUID = Path(..., description="评论 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """删除评论。"""
    data = comment_service.delete_comment(db, actor_id=ctx.user_id, comment_id=comment_id, events=events)
    return success(request, data.model_dump())
