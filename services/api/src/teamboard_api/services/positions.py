"""列内任务位次分配。

同一 (board_id, column_id) 的任务位次始终是从 0 开始的连续整数。
这里只做纯计算：输入列快照，输出需要写回的 {task_id: 新位次}，
读写数据库与加锁由调用方在同一事务内完成。
只有位次确实变化的任务才会出现在写入集合中。
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class PositionedTask:
    """参与排序计算的任务快照。"""

    id: UUID
    position: int
    created_at: datetime | None = None


@dataclass(frozen=True)
class MovePlan:
    """移动任务的计算结果。"""

    # 被移动任务最终所在位次（已按目标列长度截断）。
    final_position: int
    # 需要写回的位次变更，包含被移动任务本身（若其位次变化）。
    writes: dict[UUID, int] = field(default_factory=dict)
    # 是否跨列移动。
    changed_column: bool = False

    @property
    def is_noop(self) -> bool:
        """同列且没有任何位次变化时为空操作。"""
        return not self.changed_column and not self.writes


def _sort_key(task: PositionedTask) -> tuple[int, float, str]:
    created = task.created_at.timestamp() if task.created_at is not None else 0.0
    return task.position, created, str(task.id)


def ordered(tasks: Iterable[PositionedTask]) -> list[PositionedTask]:
    """按 (position, created_at, id) 排序，位次冲突时结果仍然确定。"""
    return sorted(tasks, key=_sort_key)


def _clamp(position: int, upper: int) -> int:
    return max(0, min(position, upper))


def _renumber(sequence: Sequence[PositionedTask]) -> dict[UUID, int]:
    return {task.id: index for index, task in enumerate(sequence) if task.position != index}


def append_position(tasks: Iterable[PositionedTask]) -> int:
    """列尾追加位次：最大位次 + 1，空列为 0。"""
    positions = [task.position for task in tasks]
    return max(positions) + 1 if positions else 0


def plan_compact(tasks: Iterable[PositionedTask]) -> dict[UUID, int]:
    """将一列重新编号为 0..n-1。"""
    return _renumber(ordered(tasks))


def plan_insert(tasks: Iterable[PositionedTask], position: int) -> tuple[int, dict[UUID, int]]:
    """在指定位次插入新任务。

    位次截断到 [0, n]，原先位于 p 及之后的任务整体后移一位。
    返回新任务的最终位次与既有任务的位次变更。
    """
    current = ordered(tasks)
    final_position = _clamp(position, len(current))
    writes: dict[UUID, int] = {}
    for index, task in enumerate(current):
        target = index if index < final_position else index + 1
        if task.position != target:
            writes[task.id] = target
    return final_position, writes


def plan_move(
    source_tasks: Iterable[PositionedTask],
    dest_tasks: Iterable[PositionedTask],
    task_id: UUID,
    position: int,
    *,
    same_column: bool,
) -> MovePlan:
    """计算移动任务后的位次写入。

    1. 被移动任务落在目标列的 p（截断到 [0, 目标列其余任务数]）。
    2. 目标列中原位于 p 及之后的其余任务后移一位。
    3. 跨列移动时，源列剩余任务重新压紧为 0..n-1。
    同列移动时 source_tasks 与 dest_tasks 应为同一列快照。
    """
    source = list(source_tasks)
    mover = next((task for task in source if task.id == task_id), None)
    if mover is None:
        raise ValueError(f"task {task_id} is not part of the source column")

    dest_base = source if same_column else list(dest_tasks)
    others = ordered(task for task in dest_base if task.id != task_id)
    final_position = _clamp(position, len(others))
    dest_sequence = [*others[:final_position], mover, *others[final_position:]]

    writes = _renumber(dest_sequence)
    if not same_column:
        writes.update(plan_compact(task for task in source if task.id != task_id))
    return MovePlan(final_position=final_position, writes=writes, changed_column=not same_column)
