"""接口成功响应 `data` 字段结构定义。

说明：
1. 所有业务接口统一返回 `SuccessResponse[data=...]`。
2. 任务与评论结构同时作为实时广播载荷，客户端拿到的是完整实体而非差量。
3. 字段描述会直接用于 Swagger 展示，便于联调时理解含义。
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from teamboard_api.schemas.common import BaseSchema


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")


class UserSummaryData(BaseSchema):
    """用户摘要，用于成员列表、评论作者与在线用户。"""

    id: UUID = Field(description="用户 ID。")
    email: str = Field(description="用户邮箱。")
    display_name: str = Field(description="用户展示名。")
    avatar_url: str | None = Field(default=None, description="头像地址。")


class WorkspaceData(BaseSchema):
    """工作空间视图。"""

    id: UUID = Field(description="工作空间 ID。")
    name: str = Field(description="工作空间名称。")
    description: str | None = Field(default=None, description="工作空间说明。")
    created_by: UUID = Field(description="创建者用户 ID。")
    role: str | None = Field(default=None, description="当前用户在该工作空间中的角色。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class WorkspaceMemberData(BaseSchema):
    """工作空间成员视图。"""

    workspace_id: UUID = Field(description="工作空间 ID。")
    user_id: UUID = Field(description="成员用户 ID。")
    email: str = Field(description="成员邮箱。")
    display_name: str = Field(description="成员展示名。")
    role: str = Field(description="成员角色。")
    is_creator: bool = Field(description="是否为工作空间创建者。")


class ProjectData(BaseSchema):
    """项目视图。"""

    id: UUID = Field(description="项目 ID。")
    workspace_id: UUID = Field(description="所属工作空间 ID。")
    name: str = Field(description="项目名称。")
    description: str | None = Field(default=None, description="项目说明。")
    created_by: UUID = Field(description="创建者用户 ID。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class BoardColumnData(BaseSchema):
    """看板列视图。"""

    id: str = Field(description="列 ID。")
    title: str = Field(description="列标题。")
    position: int = Field(description="列展示顺序。")


class BoardData(BaseSchema):
    """看板视图。"""

    id: UUID = Field(description="看板 ID。")
    project_id: UUID = Field(description="所属项目 ID。")
    name: str = Field(description="看板名称。")
    columns: list[BoardColumnData] = Field(description="按展示顺序排列的列集合。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class ProjectWithBoardData(ProjectData):
    """创建项目时返回的项目与默认看板。"""

    boards: list[BoardData] = Field(default_factory=list, description="项目下的看板。")


class TaskData(BaseSchema):
    """任务完整视图，也是任务事件的广播载荷。"""

    id: UUID = Field(description="任务 ID。")
    board_id: UUID = Field(description="所属看板 ID。")
    column_id: str = Field(description="所在列 ID。")
    title: str = Field(description="任务标题。")
    description: str | None = Field(default=None, description="任务描述。")
    priority: str = Field(description="任务优先级。")
    due_at: datetime | None = Field(default=None, description="截止时间。")
    assignee_id: UUID | None = Field(default=None, description="负责人用户 ID。")
    created_by: UUID = Field(description="创建者用户 ID。")
    position: int = Field(description="列内位置，从 0 开始连续。")
    comment_count: int = Field(default=0, description="评论数。")
    attachment_count: int = Field(default=0, description="附件数。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class CommentData(BaseSchema):
    """评论视图，也是评论事件的广播载荷。"""

    id: UUID = Field(description="评论 ID。")
    task_id: UUID = Field(description="所属任务 ID。")
    author_id: UUID = Field(description="作者用户 ID。")
    author: UserSummaryData | None = Field(default=None, description="作者摘要。")
    content: str = Field(description="评论内容。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class AttachmentData(BaseSchema):
    """附件元数据视图。"""

    id: UUID = Field(description="附件 ID。")
    task_id: UUID = Field(description="所属任务 ID。")
    uploaded_by: UUID = Field(description="上传者用户 ID。")
    filename: str = Field(description="原始文件名。")
    url: str = Field(description="外部存储访问地址。")
    size_bytes: int = Field(description="文件大小（字节）。")
    content_type: str | None = Field(default=None, description="文件 MIME 类型。")
    created_at: datetime | None = Field(default=None, description="创建时间。")


class TaskDetailData(TaskData):
    """任务详情，附带评论与附件。"""

    comments: list[CommentData] = Field(default_factory=list, description="按时间升序的评论。")
    attachments: list[AttachmentData] = Field(default_factory=list, description="附件元数据。")


class TaskDeletedData(BaseSchema):
    """任务删除结果，也是 taskDeleted 事件载荷。"""

    task_id: UUID = Field(description="被删除的任务 ID。")


class CommentDeletedData(BaseSchema):
    """评论删除结果，也是 commentDeleted 事件载荷。"""

    comment_id: UUID = Field(description="被删除的评论 ID。")
    task_id: UUID = Field(description="评论所属任务 ID。")


class DeletedData(BaseSchema):
    """通用删除结果。"""

    id: UUID = Field(description="被删除实体 ID。")
    deleted: bool = Field(default=True, description="是否已删除。")


class OnlineUsersData(BaseSchema):
    """看板在线用户列表。"""

    board_id: UUID = Field(description="看板 ID。")
    users: list[UserSummaryData] = Field(description="去重后的在线用户。")
