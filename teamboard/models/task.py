from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship
import enum

from teamboard.db.base import Base, utcnow


class TaskStatus(str, enum.Enum):
    CREATED = "created"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskType(str, enum.Enum):
    TASK = "task"
    PROJECT = "project"
    IDEA = "idea"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Task(Base):
    """Task on a team board.

    Soft-deleted tasks keep their row (``deleted_at`` set) and are excluded
    from every board read. ``parent_task_id`` is a plain self reference,
    traversed through its index rather than an object graph.
    """

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    parent_task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True, index=True)
    column_id = Column(Integer, ForeignKey("kanban_columns.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(TaskStatus, name="task_status", values_callable=_enum_values),
        nullable=False,
        default=TaskStatus.TODO,
    )
    type = Column(
        Enum(TaskType, name="task_type", values_callable=_enum_values),
        nullable=False,
        default=TaskType.TASK,
    )
    order = Column(Integer, nullable=False, default=0)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    assignee = relationship("User", lazy="raise")
