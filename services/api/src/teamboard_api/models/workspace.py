"""工作空间模型。"""

from uuid import UUID

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from teamboard_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from teamboard_api.models.enums import WorkspaceRole


class Workspace(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作空间实体，项目、看板与任务的协作隔离边界。"""

    __tablename__ = "workspaces"

    # 工作空间名称，面向用户展示。
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 可选描述，记录用途或团队说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 创建者用户 ID，始终保有 ADMIN 成员关系，且不可被移除或降级。
    created_by: Mapped[UUID] = mapped_column(nullable=False, index=True)


class WorkspaceMembership(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作空间成员关系。"""

    __tablename__ = "workspace_memberships"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uk_workspace_membership"),)

    # 工作空间 ID。
    workspace_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 用户 ID。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 工作空间角色（ADMIN/MEMBER/VIEWER）。
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=WorkspaceRole.MEMBER)
