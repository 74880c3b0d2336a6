"""项目与看板模型。"""

from typing import Any
from uuid import UUID

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from teamboard_api.models.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

# 新建看板时的默认列集合。
DEFAULT_BOARD_COLUMNS: list[dict[str, Any]] = [
    {"id": "todo", "title": "To Do", "position": 0},
    {"id": "in-progress", "title": "In Progress", "position": 1},
    {"id": "done", "title": "Done", "position": 2},
]


class Project(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """项目实体，看板的聚合容器。"""

    __tablename__ = "projects"

    # 所属工作空间 ID。
    workspace_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 项目名称。
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 可选描述。
    description: Mapped[str | None] = mapped_column(Text)
    # 创建者用户 ID。
    created_by: Mapped[UUID] = mapped_column(nullable=False)


class Board(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """看板实体。

    列定义以 JSON 数组保存在看板上（`[{id, title, position}]`），
    任务的 column_id 只做逻辑校验，不存在关系约束。
    """

    __tablename__ = "boards"

    # 所属项目 ID。
    project_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 看板名称。
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # 列定义，按 position 升序。
    columns: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    def column_ids(self) -> list[str]:
        """按展示顺序返回列 ID。"""
        ordered = sorted(self.columns or [], key=lambda column: column.get("position", 0))
        return [str(column["id"]) for column in ordered]

    def has_column(self, column_id: str) -> bool:
        """判断列 ID 是否属于本看板。"""
        return column_id in self.column_ids()
