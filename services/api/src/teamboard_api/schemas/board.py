"""项目与看板相关请求结构。"""

from pydantic import BaseModel, Field, field_validator


class ProjectCreateRequest(BaseModel):
    """创建项目请求体。"""

    name: str = Field(min_length=1, max_length=100, description="项目名称。", examples=["官网改版"])
    description: str | None = Field(default=None, max_length=500, description="项目说明。")


class ProjectUpdateRequest(BaseModel):
    """更新项目请求体。"""

    name: str | None = Field(default=None, min_length=1, max_length=100, description="新的项目名称。")
    description: str | None = Field(default=None, max_length=500, description="新的项目说明。")


class BoardColumnSpec(BaseModel):
    """看板列定义。"""

    id: str = Field(
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="列 ID，看板内唯一。",
        examples=["in-progress"],
    )
    title: str = Field(min_length=1, max_length=100, description="列标题。", examples=["In Progress"])


class BoardCreateRequest(BaseModel):
    """创建看板请求体。"""

    name: str = Field(min_length=1, max_length=100, description="看板名称。", examples=["Sprint 12"])
    columns: list[BoardColumnSpec] | None = Field(
        default=None,
        min_length=1,
        description="初始列集合，缺省时使用 To Do / In Progress / Done。",
    )


class BoardUpdateRequest(BaseModel):
    """看板重命名请求体。"""

    name: str = Field(min_length=1, max_length=100, description="新的看板名称。")


class BoardColumnsUpdateRequest(BaseModel):
    """整体替换看板列集合请求体，列顺序即展示顺序。"""

    columns: list[BoardColumnSpec] = Field(min_length=1, description="新的列集合。")

    @field_validator("columns")
    @classmethod
    def ensure_unique_ids(cls, value: list[BoardColumnSpec]) -> list[BoardColumnSpec]:
        """列 ID 在看板内必须唯一。"""
        ids = [column.id for column in value]
        if len(ids) != len(set(ids)):
            raise ValueError("column ids must be unique")
        return value
