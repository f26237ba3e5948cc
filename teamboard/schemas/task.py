from datetime import datetime, timezone
from typing import Optional
from pydantic import Field, field_validator

from teamboard.models.task import TaskStatus, TaskType
from teamboard.schemas.base import APIModel


def _naive_utc(value):
    # Columns are TIMESTAMP WITHOUT TIME ZONE
    if isinstance(value, str) and value.endswith('Z'):
        value = value[:-1] + '+00:00'
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TaskCreate(APIModel):
    """Schema for task creation"""
    team_id: int
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: TaskType = TaskType.TASK
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    column_id: Optional[int] = None
    parent_task_id: Optional[int] = None
    assignee_id: Optional[int] = None

    @field_validator('due_date', mode='before')
    @classmethod
    def parse_due_date(cls, value):
        return _naive_utc(value)


class TaskUpdate(APIModel):
    """Schema for task update; identity and timestamps are not updatable"""
    id: int
    team_id: int
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    column_id: Optional[int] = None
    order: Optional[int] = None
    parent_task_id: Optional[int] = None
    assignee_id: Optional[int] = None

    @field_validator('due_date', mode='before')
    @classmethod
    def parse_due_date(cls, value):
        return _naive_utc(value)

    def changes(self) -> dict:
        """Fields the client actually sent, minus the addressing fields"""
        return self.model_dump(exclude_unset=True, exclude={"id", "team_id"})


class TaskMove(APIModel):
    """Schema for the drag-move call"""
    id: int
    team_id: int
    column_id: Optional[int] = None
    order: int


class TaskDrop(APIModel):
    """Schema for a server-side drop: dragged task onto target task"""
    team_id: int
    active_id: int
    over_id: int


class TaskResponse(APIModel):
    """Schema for task response"""
    id: int
    team_id: int
    parent_task_id: Optional[int] = None
    column_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    type: TaskType
    order: int
    assignee_id: Optional[int] = None
    due_date: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskDropResponse(APIModel):
    moved: bool
    task: Optional[TaskResponse] = None
