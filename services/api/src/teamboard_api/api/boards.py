"""看板与列管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from teamboard_api.db.session import get_db
from teamboard_api.dependencies import get_event_sink, get_request_context
from teamboard_api.schemas.board import BoardColumnsUpdateRequest, BoardCreateRequest, BoardUpdateRequest
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import BoardData, DeletedData, OnlineUsersData
from teamboard_api.services import boards as board_service
from teamboard_api.utils.response import success

router = APIRouter(tags=["boards"])

_AUTH_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "/projects/{project_id}/boards",
    summary="创建看板",
    description="在项目下创建看板，未指定列时使用默认列集合。需要 MEMBER。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BoardData],
    responses=_AUTH_ERRORS,
)
def create_board(
    payload: BoardCreateRequest,
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """创建看板。"""
    board = board_service.create_board(
        db,
        actor_id=ctx.user_id,
        project_id=project_id,
        name=payload.name,
        columns=payload.columns,
        request=request,
    )
    return success(request, BoardData.model_validate(board).model_dump())


@router.get(
    "/projects/{project_id}/boards",
    summary="查询看板列表",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[BoardData]],
    responses=_AUTH_ERRORS,
)
def list_boards(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """返回项目下全部看板。"""
    boards = board_service.list_boards(db, actor_id=ctx.user_id, project_id=project_id)
    return success(request, [BoardData.model_validate(board).model_dump() for board in boards])


@router.get(
    "/boards/{board_id}",
    summary="查询看板详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BoardData],
    responses=_AUTH_ERRORS,
)
def get_board(
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """读取看板与列集合。"""
    board = board_service.get_board(db, actor_id=ctx.user_id, board_id=board_id)
    return success(request, BoardData.model_validate(board).model_dump())


@router.patch(
    "/boards/{board_id}",
    summary="重命名看板",
    description="需要 MEMBER，成功后向看板房间广播 boardUpdated。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BoardData],
    responses=_AUTH_ERRORS,
)
def update_board(
    payload: BoardUpdateRequest,
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """重命名看板。"""
    data = board_service.update_board(
        db, actor_id=ctx.user_id, board_id=board_id, name=payload.name, events=events, request=request
    )
    return success(request, data.model_dump())


@router.put(
    "/boards/{board_id}/columns",
    summary="替换看板列集合",
    description="按传入顺序整体替换列集合，需要 ADMIN；移除仍有任务的列返回 409。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BoardData],
    responses={**_AUTH_ERRORS, 409: {"model": ErrorResponse}},
)
def update_board_columns(
    payload: BoardColumnsUpdateRequest,
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """替换看板列集合。"""
    data = board_service.update_board_columns(
        db, actor_id=ctx.user_id, board_id=board_id, columns=payload.columns, events=events, request=request
    )
    return success(request, data.model_dump())


@router.delete(
    "/boards/{board_id}/columns/{column_id}",
    summary="删除看板列",
    description="仅空列可删除，需要 ADMIN；列中仍有任务返回 409。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[BoardData],
    responses={**_AUTH_ERRORS, 409: {"model": ErrorResponse}},
)
def delete_column(
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    column_id: str = Path(..., description="列 ID。"),
    ctx=Depends(get_request_context),
    events=Depends(get_event_sink),
    db: Session = Depends(get_db),
):
    """删除空列。"""
    data = board_service.delete_column(
        db, actor_id=ctx.user_id, board_id=board_id, column_id=column_id, events=events, request=request
    )
    return success(request, data.model_dump())


@router.delete(
    "/boards/{board_id}",
    summary="删除看板",
    description="级联删除任务、评论与附件元数据，需要 ADMIN。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_AUTH_ERRORS,
)
def delete_board(
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """删除看板。"""
    board_service.delete_board(db, actor_id=ctx.user_id, board_id=board_id, request=request)
    return success(request, {"id": board_id, "deleted": True})


@router.get(
    "/boards/{board_id}/online-users",
    summary="查询看板在线用户",
    description="返回当前进程内有连接加入该看板房间的用户（去重）。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[OnlineUsersData],
    responses=_AUTH_ERRORS,
)
def online_users(
    request: Request,
    board_id: UUID = Path(..., description="看板 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """任意成员可查看在线用户。"""
    board_service.get_board(db, actor_id=ctx.user_id, board_id=board_id)
    presence = getattr(request.app.state, "presence", None)
    users = presence.online_users(board_id) if presence is not None else []
    return success(request, {"board_id": board_id, "users": [user.model_dump() for user in users]})
