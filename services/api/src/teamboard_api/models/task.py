"""任务、评论与附件模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from teamboard_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from teamboard_api.models.enums import TaskPriority


class Task(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """看板任务。

    同一 (board_id, column_id) 内 position 构成从 0 开始的稠密序列，
    不同列的序列相互独立。
    """

    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_board_column_position", "board_id", "column_id", "position"),)

    # 所属看板 ID。
    board_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 所在列 ID（看板列集合中的逻辑键）。
    column_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # 任务标题。
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # 可选描述。
    description: Mapped[str | None] = mapped_column(Text)
    # 优先级。
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=TaskPriority.MEDIUM)
    # 截止时间。
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 负责人用户 ID，必须是工作空间成员。
    assignee_id: Mapped[UUID | None] = mapped_column(index=True)
    # 创建者用户 ID。
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    # 列内排序位次。
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Comment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """任务评论，仅作者本人可编辑与删除。"""

    __tablename__ = "comments"

    # 所属任务 ID。
    task_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 作者用户 ID。
    author_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 评论内容。
    content: Mapped[str] = mapped_column(Text, nullable=False)


class Attachment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """任务附件元数据，文件本体由外部存储负责。"""

    __tablename__ = "attachments"

    # 所属任务 ID。
    task_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 上传者用户 ID。
    uploaded_by: Mapped[UUID] = mapped_column(nullable=False)
    # 原始文件名。
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    # 外部存储访问地址。
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    # 文件大小（字节）。
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # 文件 MIME 类型。
    content_type: Mapped[str | None] = mapped_column(String(128))
