"""任务与附件接口。

写接口在事务提交后通过后台任务向看板房间广播规范状态事件。
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from teamboard_api.db.session import get_db
from teamboard_api.dependencies import get_event_sink, get_request_context
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import AttachmentData, TaskData, TaskDeletedData, TaskDetailData
from teamboard_api.schemas.task import AttachmentCreateRequest, TaskCreateRequest, TaskMoveRequest, TaskUpdateRequest
from teamboard_api.services import tasks as task_service
from teamboard_api.utils.response import success

router = APIRouter(tags=["tasks"])

_WRITE_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/boards/{board_id}/tasks",
    summary="创建任务",
    description="在指定列创建任务，缺省追加到列尾；指定位置时其后任务顺延。需要 MEMBER，广播 taskCreated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_WRITE_ERRORS,
)
def create_task(
    payload: TaskCreateRequest,
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """创建任务。"""
    data = task_service.create_task(
        db, actor_id=ctx.user_id, board_id=board_id, events=events, **payload.model_dump()
    )
    return success(request, data.model_dump())


@router.get(
    "/boards/{board_id}/tasks",
    summary="查询看板任务",
    description="按列顺序与列内位次返回全部任务。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[TaskData]],
    responses=_WRITE_ERRORS,
)
def list_tasks(
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """任意成员可读取看板任务。"""
    data = task_service.get_tasks_for_board(db, actor_id=ctx.user_id, board_id=board_id)
    return success(request, [item.model_dump() for item in data])


@router.get(
    "/tasks/{task_id}",
    summary="查询任务详情",
    description="返回任务及其评论、附件元数据。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskDetailData],
    responses=_WRITE_ERRORS,
)
def get_task(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """读取任务详情。"""
    data = task_service.get_task(db, actor_id=ctx.user_id, task_id=task_id)
    return success(request, data.model_dump())


@router.patch(
    "/tasks/{task_id}",
    summary="更新任务",
    description="部分更新标题、描述、优先级、截止时间或负责人，不影响位置。需要 MEMBER，广播 taskUpdated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_WRITE_ERRORS,
)
def update_task(
    payload: TaskUpdateRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """部分更新任务。"""
    data = task_service.update_task(
        db,
        actor_id=ctx.user_id,
        task_id=task_id,
        changes=payload.model_dump(exclude_unset=True),
        events=events,
    )
    return success(request, data.model_dump())


@router.post(
    "/tasks/{task_id}/move",
    summary="移动任务",
    description="移动到目标列的指定位置，超出列尾时落在列尾；位置未变化时不广播。需要 MEMBER，广播 taskMoved。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_WRITE_ERRORS,
)
def move_task(
    payload: TaskMoveRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """移动任务。"""
    data = task_service.move_task(
        db,
        actor_id=ctx.user_id,
        task_id=task_id,
        column_id=payload.column_id,
        position=payload.position,
        events=events,
    )
    return success(request, data.model_dump())


@router.delete(
    "/tasks/{task_id}",
    summary="删除任务",
    description="级联删除评论与附件元数据，并压紧所在列位置。需要 MEMBER，广播 taskDeleted。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskDeletedData],
    responses=_WRITE_ERRORS,
)
def delete_task(
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """删除任务。"""
    data = task_service.delete_task(db, actor_id=ctx.user_id, task_id=task_id, events=events)
    return success(request, data.model_dump())


@router.post(
    "/tasks/{task_id}/attachments",
    summary="登记附件",
    description="登记外部存储中文件的元数据。需要 MEMBER，广播 taskUpdated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AttachmentData],
    responses=_WRITE_ERRORS,
)
def add_attachment(
    payload: AttachmentCreateRequest,
    request: Request,
    task_id: UUID = Path(..., description="任务 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """登记附件元数据。"""
    data = task_service.add_attachment(
        db, actor_id=ctx.user_id, task_id=task_id, events=events, **payload.model_dump()
    )
    return success(request, data.model_dump())


@router.delete(
    "/attachments/{attachment_id}",
    summary="删除附件",
    description="删除附件元数据并返回刷新计数后的任务。需要 MEMBER，广播 taskUpdated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TaskData],
    responses=_WRITE_ERRORS,
)
def delete_attachment(
    request: Request,
    attachment_id: UUID = Path(..., description="附件 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """删除附件元数据。"""
    data = task_service.delete_attachment(db, actor_id=ctx.user_id, attachment_id=attachment_id, events=events)
    return success(request, data.model_dump())
