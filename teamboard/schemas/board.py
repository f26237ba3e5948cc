from datetime import datetime
from typing import List, Optional

from teamboard.schemas.auth import UserBrief
from teamboard.schemas.base import APIModel
from teamboard.schemas.task import TaskResponse


class BoardTask(TaskResponse):
    """Task as shown on the board, with the assignee resolved"""
    assignee: Optional[UserBrief] = None


class BoardColumn(APIModel):
    """Column with its live tasks, in display order"""
    id: int
    team_id: int
    name: str
    order: int
    created_at: datetime
    updated_at: datetime
    tasks: List[BoardTask] = []
