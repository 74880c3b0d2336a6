"""工作空间与成员管理服务。

创建者始终保有 ADMIN 成员关系，不可被移除或降级；
工作空间删除仅限创建者。
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from teamboard_api.errors import Conflict, NotFound, ValidationFailed
from teamboard_api.models.enums import WorkspaceRole
from teamboard_api.models.project import Project
from teamboard_api.models.user import User
from teamboard_api.models.workspace import Workspace, WorkspaceMembership
from teamboard_api.schemas.responses import WorkspaceData, WorkspaceMemberData
from teamboard_api.services.audit import audit_log
from teamboard_api.services.authorization import authorize, ensure_workspace_creator, get_workspace_membership
from teamboard_api.services.boards import purge_projects

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


def workspace_view(workspace: Workspace, role: str | None) -> WorkspaceData:
    """构造带当前角色的工作空间视图。"""
    return WorkspaceData.model_validate(workspace).model_copy(update={"role": role})


def _member_view(workspace: Workspace, membership: WorkspaceMembership, user: User) -> WorkspaceMemberData:
    return WorkspaceMemberData(
        workspace_id=workspace.id,
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=membership.role,
        is_creator=workspace.created_by == user.id,
    )


def create_workspace(
    db: Session,
    *,
    actor_id: UUID,
    name: str,
    description: str | None = None,
    request: Request | None = None,
) -> WorkspaceData:
    """创建工作空间，创建者自动成为 ADMIN。"""
    workspace = Workspace(name=name, description=description, created_by=actor_id)
    db.add(workspace)
    db.flush()
    db.add(WorkspaceMembership(workspace_id=workspace.id, user_id=actor_id, role=WorkspaceRole.ADMIN))
    audit_log(
        db=db,
        request=request,
        workspace_id=workspace.id,
        actor_user_id=actor_id,
        action="workspace.create",
        resource_type="workspace",
        resource_id=str(workspace.id),
        after_json={"name": workspace.name},
    )
    db.commit()
    db.refresh(workspace)
    logger.info("workspace %s created by %s", workspace.id, actor_id)
    return workspace_view(workspace, WorkspaceRole.ADMIN)


def list_workspaces(db: Session, *, actor_id: UUID) -> list[WorkspaceData]:
    """返回当前用户所属的工作空间。"""
    rows = db.execute(
        select(Workspace, WorkspaceMembership.role)
        .join(WorkspaceMembership, WorkspaceMembership.workspace_id == Workspace.id)
        .where(WorkspaceMembership.user_id == actor_id)
        .order_by(Workspace.created_at, Workspace.id)
    ).all()
    return [workspace_view(workspace, role) for workspace, role in rows]


def get_workspace(db: Session, *, actor_id: UUID, workspace_id: UUID) -> WorkspaceData:
    """读取工作空间。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id)
    return workspace_view(grant.workspace, grant.role)


def update_workspace(
    db: Session,
    *,
    actor_id: UUID,
    workspace_id: UUID,
    changes: dict[str, Any],
    request: Request | None = None,
) -> WorkspaceData:
    """更新工作空间名称或说明。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id, min_role=WorkspaceRole.ADMIN)
    workspace = grant.workspace
    before = {"name": workspace.name, "description": workspace.description}
    if "name" in changes:
        if changes["name"] is None:
            raise ValidationFailed("name cannot be null", field="name")
        workspace.name = changes["name"]
    if "description" in changes:
        workspace.description = changes["description"]

    audit_log(
        db=db,
        request=request,
        workspace_id=workspace.id,
        actor_user_id=actor_id,
        action="workspace.update",
        resource_type="workspace",
        resource_id=str(workspace.id),
        before_json=before,
        after_json={"name": workspace.name, "description": workspace.description},
    )
    db.commit()
    db.refresh(workspace)
    return workspace_view(workspace, grant.role)


def delete_workspace(db: Session, *, actor_id: UUID, workspace_id: UUID, request: Request | None = None) -> None:
    """删除工作空间及其项目、看板、任务与成员关系，仅创建者可操作。"""
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise NotFound("workspace not found")
    ensure_workspace_creator(workspace, actor_id)

    audit_log(
        db=db,
        request=request,
        workspace_id=workspace.id,
        actor_user_id=actor_id,
        action="workspace.delete",
        resource_type="workspace",
        resource_id=str(workspace.id),
        before_json={"name": workspace.name},
    )
    purge_projects(db, select(Project.id).where(Project.workspace_id == workspace.id))
    db.execute(delete(WorkspaceMembership).where(WorkspaceMembership.workspace_id == workspace.id))
    db.delete(workspace)
    db.commit()
    logger.info("workspace %s deleted by %s", workspace_id, actor_id)


def list_members(db: Session, *, actor_id: UUID, workspace_id: UUID) -> list[WorkspaceMemberData]:
    """返回工作空间成员列表。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id)
    rows = db.execute(
        select(WorkspaceMembership, User)
        .join(User, User.id == WorkspaceMembership.user_id)
        .where(WorkspaceMembership.workspace_id == workspace_id)
        .order_by(WorkspaceMembership.created_at, User.email)
    ).all()
    return [_member_view(grant.workspace, membership, user) for membership, user in rows]


def invite_member(
    db: Session,
    *,
    actor_id: UUID,
    workspace_id: UUID,
    email: str,
    role: WorkspaceRole = WorkspaceRole.MEMBER,
    request: Request | None = None,
) -> WorkspaceMemberData:
    """按邮箱邀请已存在的用户加入工作空间。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id, min_role=WorkspaceRole.ADMIN)
    user = db.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()
    if user is None:
        raise NotFound("user not found")
    if get_workspace_membership(db, workspace_id=workspace_id, user_id=user.id) is not None:
        raise Conflict("user is already a member")

    membership = WorkspaceMembership(workspace_id=workspace_id, user_id=user.id, role=WorkspaceRole(role))
    db.add(membership)
    audit_log(
        db=db,
        request=request,
        workspace_id=workspace_id,
        actor_user_id=actor_id,
        action="workspace.member.invite",
        resource_type="workspace_membership",
        resource_id=str(user.id),
        after_json={"role": str(role)},
    )
    db.commit()
    db.refresh(membership)
    return _member_view(grant.workspace, membership, user)


def _load_target(db: Session, workspace_id: UUID, user_id: UUID) -> tuple[WorkspaceMembership, User]:
    membership = get_workspace_membership(db, workspace_id=workspace_id, user_id=user_id)
    user = db.get(User, user_id)
    if membership is None or user is None:
        raise NotFound("member not found")
    return membership, user


def remove_member(
    db: Session,
    *,
    actor_id: UUID,
    workspace_id: UUID,
    user_id: UUID,
    request: Request | None = None,
) -> None:
    """移除成员，创建者不可移除。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id, min_role=WorkspaceRole.ADMIN)
    membership, _ = _load_target(db, workspace_id, user_id)
    if grant.workspace.created_by == user_id:
        raise ValidationFailed("workspace creator cannot be removed")

    db.delete(membership)
    audit_log(
        db=db,
        request=request,
        workspace_id=workspace_id,
        actor_user_id=actor_id,
        action="workspace.member.remove",
        resource_type="workspace_membership",
        resource_id=str(user_id),
        before_json={"role": membership.role},
    )
    db.commit()


def update_member_role(
    db: Session,
    *,
    actor_id: UUID,
    workspace_id: UUID,
    user_id: UUID,
    role: WorkspaceRole,
    request: Request | None = None,
) -> WorkspaceMemberData:
    """变更成员角色，创建者必须保持 ADMIN。"""
    grant = authorize(db, user_id=actor_id, workspace_id=workspace_id, min_role=WorkspaceRole.ADMIN)
    membership, user = _load_target(db, workspace_id, user_id)
    role = WorkspaceRole(role)
    if grant.workspace.created_by == user_id and role != WorkspaceRole.ADMIN:
        raise ValidationFailed("workspace creator must stay ADMIN")

    before = membership.role
    membership.role = role
    audit_log(
        db=db,
        request=request,
        workspace_id=workspace_id,
        actor_user_id=actor_id,
        action="workspace.member.role",
        resource_type="workspace_membership",
        resource_id=str(user_id),
        before_json={"role": before},
        after_json={"role": str(role)},
    )
    db.commit()
    db.refresh(membership)
    return _member_view(grant.workspace, membership, user)
