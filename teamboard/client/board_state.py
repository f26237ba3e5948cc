"""Optimistic in-memory board used by drag-and-drop clients.

The board mirrors ``GET /kanban``. A drag gesture moves through
``IDLE -> DRAGGING -> RECONCILING -> IDLE``: the move is shown locally as soon
as the gesture ends, then persisted. When persistence fails the board is put
back to how it looked before the move and the error is re-raised.
"""
import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from teamboard.core.ordering import MovePlan, apply_move, plan_move, sort_key
from teamboard.logs import debug_logger

Persist = Callable[[MovePlan, int], Awaitable[Any]]


class DragPhase(str, enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RECONCILING = "reconciling"


class InvalidTransitionError(Exception):
    """Raised when a drag event arrives in a phase that cannot accept it."""

    def __init__(self, phase: DragPhase, event: str):
        self.phase = phase
        self.event = event
        super().__init__(f"Cannot {event} while {phase.value}")


def _parse_datetime(value):
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


@dataclass
class ClientTask:
    id: int
    team_id: int
    column_id: int
    title: str
    order: int
    status: str = "todo"
    type: str = "task"
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    due_date: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ClientTask":
        return cls(
            id=payload["id"],
            team_id=payload["teamId"],
            column_id=payload["columnId"],
            title=payload["title"],
            order=payload["order"],
            status=payload.get("status", "todo"),
            type=payload.get("type", "task"),
            description=payload.get("description"),
            assignee_id=payload.get("assigneeId"),
            due_date=_parse_datetime(payload.get("dueDate")),
        )


@dataclass
class ClientColumn:
    id: int
    team_id: int
    name: str
    order: int
    tasks: List[ClientTask] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ClientColumn":
        return cls(
            id=payload["id"],
            team_id=payload["teamId"],
            name=payload["name"],
            order=payload["order"],
            tasks=[ClientTask.from_payload(task) for task in payload.get("tasks", [])],
        )


def _display_order(columns: Iterable[ClientColumn]) -> List[ClientColumn]:
    """Columns and their tasks sorted by (order, id)"""
    ordered = sorted(columns, key=sort_key)
    for column in ordered:
        column.tasks = sorted(column.tasks, key=sort_key)
    return ordered


class BoardStateReconciler:
    """Drag state machine over a local copy of one team board.

    Args:
        columns: Board columns with their tasks; sorted by (order, id) on load
        persist: Coroutine function called with ``(plan, team_id)`` to store a move
        rollback_on_failure: Restore the pre-move board when ``persist`` raises.
            With False the optimistic board is kept and may diverge from the
            server until the next reload.
    """

    def __init__(
        self,
        columns: Iterable[ClientColumn],
        persist: Persist,
        rollback_on_failure: bool = True
    ):
        self.columns: List[ClientColumn] = _display_order(columns)
        self.persist = persist
        self.rollback_on_failure = rollback_on_failure
        self.phase = DragPhase.IDLE
        self.active_task: Optional[ClientTask] = None

    @classmethod
    def from_payload(
        cls,
        payload: Iterable[Dict[str, Any]],
        persist: Persist,
        rollback_on_failure: bool = True
    ) -> "BoardStateReconciler":
        return cls(
            [ClientColumn.from_payload(column) for column in payload],
            persist,
            rollback_on_failure=rollback_on_failure,
        )

    def find_task(self, task_id: int) -> Optional[ClientTask]:
        for column in self.columns:
            for task in column.tasks:
                if task.id == task_id:
                    return task
        return None

    def start_drag(self, task_id: int) -> Optional[ClientTask]:
        """Begin dragging a task; an unknown task leaves the board idle"""
        if self.phase is not DragPhase.IDLE:
            raise InvalidTransitionError(self.phase, "start a drag")

        task = self.find_task(task_id)
        if task is None:
            return None

        self.active_task = task
        self.phase = DragPhase.DRAGGING
        return task

    def cancel_drag(self) -> None:
        if self.phase is DragPhase.RECONCILING:
            raise InvalidTransitionError(self.phase, "cancel a drag")
        self.active_task = None
        self.phase = DragPhase.IDLE

    async def end_drag(self, over_task_id: Optional[int]) -> Optional[MovePlan]:
        """Drop the dragged task onto ``over_task_id``.

        The local board changes before ``persist`` is awaited. Returns the
        applied plan, or None when the drop could not be resolved, in which
        case nothing is sent.
        """
        if self.phase is not DragPhase.DRAGGING:
            raise InvalidTransitionError(self.phase, "end a drag")

        self.phase = DragPhase.RECONCILING
        try:
            plan = plan_move(self.columns, self.active_task.id, over_task_id)
            if plan is None:
                debug_logger.debug(f"Drop of task {self.active_task.id} abandoned")
                return None

            team_id = next(c.team_id for c in self.columns if c.id == plan.source_column_id)
            snapshot = copy.deepcopy(self.columns)
            apply_move(self.columns, plan)

            try:
                await self.persist(plan, team_id)
            except Exception:
                if self.rollback_on_failure:
                    self.columns = snapshot
                    debug_logger.warning(f"Move of task {plan.task_id} failed, local board restored")
                else:
                    debug_logger.warning(f"Move of task {plan.task_id} failed, local board kept")
                raise

            return plan
        finally:
            self.active_task = None
            self.phase = DragPhase.IDLE

    def reload(self, columns: Iterable[ClientColumn]) -> None:
        """Replace the local board with a fresh copy from the server.

        Only allowed while idle; a drag in flight holds references into the
        current board and a pending persist may still restore its snapshot.
        """
        if self.phase is not DragPhase.IDLE:
            raise InvalidTransitionError(self.phase, "reload the board")
        self.columns = _display_order(columns)
