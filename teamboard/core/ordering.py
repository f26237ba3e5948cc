"""Drag-and-drop ordering rules shared by the server and the client board.

Task ``order`` values are sparse sort hints, not dense indexes. A move writes
the new order of the moved task only; the other tasks keep their values and
relative order is resolved by ``(order, id)``. Re-normalization is a separate,
explicit operation.

Both functions here work on any board shape whose columns expose ``id`` and a
mutable ``tasks`` list of objects exposing ``id``: the server's assembled
board and the client's in-memory board alike.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class MovePlan:
    """Result of a drop gesture: what to show locally and what to persist"""

    task_id: int
    source_column_id: int
    target_column_id: int
    old_index: int
    new_index: int
    order: int

    @property
    def cross_column(self) -> bool:
        return self.source_column_id != self.target_column_id

    def to_payload(self, team_id: int) -> Dict[str, Any]:
        """Body of the ``PATCH /task`` call persisting this move"""
        payload = {"id": self.task_id, "teamId": team_id, "order": self.order}
        if self.cross_column:
            payload["columnId"] = self.target_column_id
        return payload


def array_move(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    """Return a copy with the item at ``old_index`` moved to ``new_index``.

    Items between the two positions shift by one to fill the gap.
    """
    result = list(items)
    if not result:
        return result
    item = result.pop(old_index)
    result.insert(new_index, item)
    return result


def sort_key(row: Any):
    """Display ordering for columns and tasks: order, then id"""
    return (row.order, row.id)


def _find_column(columns, task_id):
    for column in columns:
        if any(task.id == task_id for task in column.tasks):
            return column
    return None


def plan_move(columns, active_task_id: int, over_task_id: Optional[int]) -> Optional[MovePlan]:
    """Plan dropping ``active_task_id`` onto ``over_task_id``.

    Same column: standard array move, and the persisted order is the target
    task's index before the move. Different columns: the task is appended to
    the destination and the persisted order is the destination's task count
    before the append. Returns ``None`` when the dragged task, the target task
    or either column cannot be resolved.
    """
    if over_task_id is None:
        return None

    source = _find_column(columns, active_task_id)
    target = _find_column(columns, over_task_id)
    if source is None or target is None:
        return None

    old_index = next(i for i, task in enumerate(source.tasks) if task.id == active_task_id)

    if source.id != target.id:
        return MovePlan(
            task_id=active_task_id,
            source_column_id=source.id,
            target_column_id=target.id,
            old_index=old_index,
            new_index=len(target.tasks),
            order=len(target.tasks),
        )

    new_index = next(i for i, task in enumerate(source.tasks) if task.id == over_task_id)
    return MovePlan(
        task_id=active_task_id,
        source_column_id=source.id,
        target_column_id=source.id,
        old_index=old_index,
        new_index=new_index,
        order=new_index,
    )


def apply_move(columns, plan: MovePlan) -> None:
    """Apply a planned move to the in-memory board, in place"""
    source = next(column for column in columns if column.id == plan.source_column_id)
    task = source.tasks[plan.old_index]
    # Mirror the fields the persistence call writes
    task.order = plan.order

    if not plan.cross_column:
        source.tasks = array_move(source.tasks, plan.old_index, plan.new_index)
        return

    target = next(column for column in columns if column.id == plan.target_column_id)
    task.column_id = plan.target_column_id
    source.tasks = [t for t in source.tasks if t.id != plan.task_id]
    target.tasks = [*target.tasks, task]
