"""工作空间相关请求结构。"""

from pydantic import BaseModel, Field

from teamboard_api.models.enums import WorkspaceRole


class WorkspaceCreateRequest(BaseModel):
    """创建工作空间请求体。"""

    name: str = Field(min_length=1, max_length=100, description="工作空间名称。", examples=["产品研发组"])
    description: str | None = Field(default=None, max_length=500, description="工作空间说明。")


class WorkspaceUpdateRequest(BaseModel):
    """更新工作空间请求体。"""

    name: str | None = Field(default=None, min_length=1, max_length=100, description="新的工作空间名称。")
    description: str | None = Field(default=None, max_length=500, description="新的工作空间说明。")


class MemberInviteRequest(BaseModel):
    """按邮箱邀请成员请求体。"""

    email: str = Field(
        min_length=3,
        max_length=256,
        pattern=r"^[^@\s]+@[^@\s]+$",
        description="被邀请用户的邮箱，用户需已在系统中登录过。",
    )
    role: WorkspaceRole = Field(default=WorkspaceRole.MEMBER, description="授予的工作空间角色。")


class MemberRoleUpdateRequest(BaseModel):
    """成员角色变更请求体。"""

    role: WorkspaceRole = Field(description="新的工作空间角色。", examples=["VIEWER"])
