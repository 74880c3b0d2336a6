"""项目管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from teamboard_api.db.session import get_db
from teamboard_api.dependencies import get_request_context
from teamboard_api.schemas.board import ProjectCreateRequest, ProjectUpdateRequest
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import BoardData, DeletedData, ProjectData, ProjectWithBoardData
from teamboard_api.services import boards as board_service
from teamboard_api.utils.response import success

router = APIRouter(tags=["projects"])

_AUTH_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "/workspaces/{workspace_id}/projects",
    summary="创建项目",
    description="在工作空间下创建项目，并自动创建默认看板（To Do / In Progress / Done）。需要 MEMBER。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProjectWithBoardData],
    responses=_AUTH_ERRORS,
)
def create_project(
    payload: ProjectCreateRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """创建项目与默认看板。"""
    project, board = board_service.create_project(
        db,
        actor_id=ctx.user_id,
        workspace_id=workspace_id,
        name=payload.name,
        description=payload.description,
        request=request,
    )
    data = ProjectData.model_validate(project).model_dump()
    data["boards"] = [BoardData.model_validate(board).model_dump()]
    return success(request, data)


@router.get(
    "/workspaces/{workspace_id}/projects",
    summary="查询项目列表",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[ProjectData]],
    responses=_AUTH_ERRORS,
)
def list_projects(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """返回工作空间下全部项目。"""
    projects = board_service.list_projects(db, actor_id=ctx.user_id, workspace_id=workspace_id)
    return success(request, [ProjectData.model_validate(item).model_dump() for item in projects])


@router.get(
    "/projects/{project_id}",
    summary="查询项目详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProjectWithBoardData],
    responses=_AUTH_ERRORS,
)
def get_project(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """返回项目及其看板。"""
    project = board_service.get_project(db, actor_id=ctx.user_id, project_id=project_id)
    boards = board_service.list_boards(db, actor_id=ctx.user_id, project_id=project_id)
    data = ProjectData.model_validate(project).model_dump()
    data["boards"] = [BoardData.model_validate(board).model_dump() for board in boards]
    return success(request, data)


@router.patch(
    "/projects/{project_id}",
    summary="更新项目",
    description="更新项目名称或说明，需要 MEMBER。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProjectData],
    responses=_AUTH_ERRORS,
)
def update_project(
    payload: ProjectUpdateRequest,
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """部分更新项目。"""
    project = board_service.update_project(
        db,
        actor_id=ctx.user_id,
        project_id=project_id,
        changes=payload.model_dump(exclude_unset=True),
        request=request,
    )
    return success(request, ProjectData.model_validate(project).model_dump())


@router.delete(
    "/projects/{project_id}",
    summary="删除项目",
    description="级联删除看板与任务；工作空间 ADMIN 或项目创建者可操作。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_AUTH_ERRORS,
)
def delete_project(
    request: Request,
    project_id: UUID = Path(..., description="项目 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """删除项目。"""
    board_service.delete_project(db, actor_id=ctx.user_id, project_id=project_id, request=request)
    return success(request, {"id": project_id, "deleted": True})
