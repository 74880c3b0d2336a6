from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from teamboard_api.services.positions import (
    PositionedTask,
    append_position,
    ordered,
    plan_compact,
    plan_insert,
    plan_move,
)

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _column(count: int) -> list[PositionedTask]:
    return [PositionedTask(id=uuid4(), position=i, created_at=_BASE + timedelta(minutes=i)) for i in range(count)]


def _apply(tasks: list[PositionedTask], writes: dict) -> dict:
    return {task.id: writes.get(task.id, task.position) for task in tasks}


def test_append_position_is_max_plus_one():
    assert append_position([]) == 0
    assert append_position(_column(3)) == 3


def test_plan_insert_shifts_tasks_at_or_after_position():
    column = _column(3)
    final, writes = plan_insert(column, 1)

    assert final == 1
    assert writes == {column[1].id: 2, column[2].id: 3}


def test_plan_insert_clamps_to_column_end():
    column = _column(2)
    final, writes = plan_insert(column, 99)

    assert final == 2
    assert writes == {}


def test_plan_compact_renumbers_gaps():
    a, b, c = _column(3)
    gapped = [a, PositionedTask(id=b.id, position=4, created_at=b.created_at), PositionedTask(id=c.id, position=9)]

    assert plan_compact(gapped) == {b.id: 1, c.id: 2}


def test_ordered_breaks_position_ties_by_created_at_then_id():
    early = PositionedTask(id=uuid4(), position=0, created_at=_BASE)
    late = PositionedTask(id=uuid4(), position=0, created_at=_BASE + timedelta(seconds=1))

    assert ordered([late, early]) == [early, late]


def test_same_column_move_down_only_touches_affected_range():
    column = _column(5)
    mover = column[1]
    plan = plan_move(column, column, mover.id, 3, same_column=True)

    assert plan.final_position == 3
    assert not plan.changed_column
    # 只有位于 1..3 之间的任务位次发生变化。
    assert plan.writes == {column[2].id: 1, column[3].id: 2, mover.id: 3}
    assert sorted(_apply(column, plan.writes).values()) == [0, 1, 2, 3, 4]


def test_same_column_move_up():
    column = _column(4)
    mover = column[3]
    plan = plan_move(column, column, mover.id, 0, same_column=True)

    assert plan.writes == {mover.id: 0, column[0].id: 1, column[1].id: 2, column[2].id: 3}


def test_move_to_current_position_is_noop():
    column = _column(3)
    plan = plan_move(column, column, column[1].id, 1, same_column=True)

    assert plan.is_noop
    assert plan.writes == {}


def test_move_past_end_of_same_column_clamps_and_can_be_noop():
    column = _column(3)
    plan = plan_move(column, column, column[2].id, 50, same_column=True)

    assert plan.final_position == 2
    assert plan.is_noop


def test_cross_column_move_shifts_destination_and_compacts_source():
    source = _column(3)
    dest = _column(2)
    mover = source[1]
    plan = plan_move(source, dest, mover.id, 0, same_column=False)

    assert plan.changed_column
    assert not plan.is_noop
    assert plan.final_position == 0
    assert plan.writes == {
        mover.id: 0,
        dest[0].id: 1,
        dest[1].id: 2,
        source[2].id: 1,
    }
    remaining_source = _apply([source[0], source[2]], plan.writes)
    assert sorted(remaining_source.values()) == [0, 1]


def test_cross_column_move_into_empty_column():
    source = _column(2)
    plan = plan_move(source, [], source[0].id, 7, same_column=False)

    assert plan.final_position == 0
    assert plan.writes == {source[1].id: 0}
    assert plan.changed_column


def test_plan_move_rejects_unknown_task():
    with pytest.raises(ValueError):
        plan_move(_column(2), [], uuid4(), 0, same_column=False)
