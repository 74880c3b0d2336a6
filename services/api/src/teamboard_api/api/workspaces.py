"""工作空间与成员管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from teamboard_api.db.session import get_db
from teamboard_api.dependencies import get_request_context
from teamboard_api.schemas.common import ErrorResponse, SuccessResponse
from teamboard_api.schemas.responses import DeletedData, WorkspaceData, WorkspaceMemberData
from teamboard_api.schemas.workspace import (
    MemberInviteRequest,
    MemberRoleUpdateRequest,
    WorkspaceCreateRequest,
    WorkspaceUpdateRequest,
)
from teamboard_api.services import workspaces as workspace_service
from teamboard_api.utils.response import success

router = APIRouter(prefix="/workspaces", tags=["workspaces"])

_AUTH_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.post(
    "",
    summary="创建工作空间",
    description="创建工作空间，创建者自动成为 ADMIN。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses={401: {"model": ErrorResponse}},
)
def create_workspace(
    payload: WorkspaceCreateRequest,
    request: Request,
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """创建工作空间并初始化创建者成员关系。"""
    data = workspace_service.create_workspace(
        db,
        actor_id=ctx.user_id,
        name=payload.name,
        description=payload.description,
        request=request,
    )
    return success(request, data.model_dump())


@router.get(
    "",
    summary="查询工作空间列表",
    description="返回当前用户所属的工作空间及其角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceData]],
    responses={401: {"model": ErrorResponse}},
)
def list_workspaces(
    request: Request,
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """按成员关系返回工作空间视图。"""
    data = workspace_service.list_workspaces(db, actor_id=ctx.user_id)
    return success(request, [item.model_dump() for item in data])


@router.get(
    "/{workspace_id}",
    summary="查询工作空间详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses=_AUTH_ERRORS,
)
def get_workspace(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """任意成员可读取工作空间。"""
    data = workspace_service.get_workspace(db, actor_id=ctx.user_id, workspace_id=workspace_id)
    return success(request, data.model_dump())


@router.patch(
    "/{workspace_id}",
    summary="更新工作空间",
    description="更新名称或说明，需要 ADMIN。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses=_AUTH_ERRORS,
)
def update_workspace(
    payload: WorkspaceUpdateRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """部分更新工作空间基础信息。"""
    data = workspace_service.update_workspace(
        db,
        actor_id=ctx.user_id,
        workspace_id=workspace_id,
        changes=payload.model_dump(exclude_unset=True),
        request=request,
    )
    return success(request, data.model_dump())


@router.delete(
    "/{workspace_id}",
    summary="删除工作空间",
    description="级联删除项目、看板、任务与成员关系，仅创建者可操作。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_AUTH_ERRORS,
)
def delete_workspace(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """删除工作空间。"""
    workspace_service.delete_workspace(db, actor_id=ctx.user_id, workspace_id=workspace_id, request=request)
    return success(request, {"id": workspace_id, "deleted": True})


@router.get(
    "/{workspace_id}/members",
    summary="查询工作空间成员",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceMemberData]],
    responses=_AUTH_ERRORS,
)
def list_members(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """任意成员可查看成员列表。"""
    data = workspace_service.list_members(db, actor_id=ctx.user_id, workspace_id=workspace_id)
    return success(request, [item.model_dump() for item in data])


@router.post(
    "/{workspace_id}/members",
    summary="邀请成员",
    description="按邮箱邀请已登录过的用户，需要 ADMIN；用户不存在返回 404，已是成员返回 409。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceMemberData],
    responses={**_AUTH_ERRORS, 409: {"model": ErrorResponse}},
)
def invite_member(
    payload: MemberInviteRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """新增工作空间成员。"""
    data = workspace_service.invite_member(
        db,
        actor_id=ctx.user_id,
        workspace_id=workspace_id,
        email=payload.email,
        role=payload.role,
        request=request,
    )
    return success(request, data.model_dump())


@router.patch(
    "/{workspace_id}/members/{user_id}",
    summary="变更成员角色",
    description="需要 ADMIN；创建者必须保持 ADMIN。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceMemberData],
    responses={**_AUTH_ERRORS, 422: {"model": ErrorResponse}},
)
def update_member_role(
    payload: MemberRoleUpdateRequest,
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Path(..., description="目标用户 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """变更成员角色。"""
    data = workspace_service.update_member_role(
        db,
        actor_id=ctx.user_id,
        workspace_id=workspace_id,
        user_id=user_id,
        role=payload.role,
        request=request,
    )
    return success(request, data.model_dump())


@router.delete(
    "/{workspace_id}/members/{user_id}",
    summary="移除成员",
    description="需要 ADMIN；创建者不可移除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={**_AUTH_ERRORS, 422: {"model": ErrorResponse}},
)
def remove_member(
    request: Request,
    workspace_id: UUID = Path(..., description="工作空间 ID。"),
    user_id: UUID = Path(..., description="目标用户 ID。"),
    ctx=Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """移除工作空间成员。"""
    workspace_service.remove_member(
        db, actor_id=ctx.user_id, workspace_id=workspace_id, user_id=user_id, request=request
    )
    return success(request, {"id": user_id, "deleted": True})
