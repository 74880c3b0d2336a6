"""任务、评论与附件相关请求结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from teamboard_api.models.enums import TaskPriority


class TaskCreateRequest(BaseModel):
    """创建任务请求体。"""

    column_id: str = Field(min_length=1, max_length=64, description="目标列 ID。", examples=["todo"])
    title: str = Field(min_length=1, max_length=200, description="任务标题。", examples=["梳理需求清单"])
    description: str | None = Field(default=None, max_length=2000, description="任务描述。")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="任务优先级。")
    due_at: datetime | None = Field(default=None, description="截止时间。")
    assignee_id: UUID | None = Field(default=None, description="负责人用户 ID，必须是工作空间成员。")
    position: int | None = Field(default=None, ge=0, description="列内位置，缺省追加到列尾。")


class TaskUpdateRequest(BaseModel):
    """任务部分更新请求体，不包含位置与列。"""

    title: str | None = Field(default=None, min_length=1, max_length=200, description="新的任务标题。")
    description: str | None = Field(default=None, max_length=2000, description="新的任务描述。")
    priority: TaskPriority | None = Field(default=None, description="新的优先级。")
    due_at: datetime | None = Field(default=None, description="新的截止时间。")
    assignee_id: UUID | None = Field(default=None, description="新的负责人用户 ID，显式传 null 表示取消指派。")


class TaskMoveRequest(BaseModel):
    """移动任务请求体。"""

    column_id: str = Field(min_length=1, max_length=64, description="目标列 ID。", examples=["in-progress"])
    position: int = Field(ge=0, description="目标列内位置，超过列尾时落在列尾。", examples=[0])


class CommentCreateRequest(BaseModel):
    """新增评论请求体。"""

    content: str = Field(min_length=1, max_length=1000, description="评论内容。")


class CommentUpdateRequest(BaseModel):
    """编辑评论请求体。"""

    content: str = Field(min_length=1, max_length=1000, description="新的评论内容。")


class AttachmentCreateRequest(BaseModel):
    """登记附件元数据请求体，文件本体需先上传到外部存储。"""

    filename: str = Field(min_length=1, max_length=255, description="原始文件名。", examples=["roadmap.pdf"])
    url: str = Field(min_length=1, max_length=1024, description="外部存储访问地址。")
    size_bytes: int = Field(default=0, ge=0, description="文件大小（字节）。")
    content_type: str | None = Field(default=None, max_length=128, description="文件 MIME 类型。")
