"""路由模块导出集合。"""

from . import boards, comments, health, projects, tasks, workspaces

__all__ = ["boards", "comments", "health", "projects", "tasks", "workspaces"]
