from teamboard.client.board_state import (
    BoardStateReconciler,
    ClientColumn,
    ClientTask,
    DragPhase,
    InvalidTransitionError,
)
from teamboard.client.api_client import ApiError, KanbanApiClient

__all__ = [
    "ApiError",
    "BoardStateReconciler",
    "ClientColumn",
    "ClientTask",
    "DragPhase",
    "InvalidTransitionError",
    "KanbanApiClient",
]
