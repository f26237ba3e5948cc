from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
import enum

from teamboard.db.base import Base, utcnow


class ActivityType(str, enum.Enum):
    CREATE_TEAM = "CREATE_TEAM"
    INVITE_TEAM_MEMBER = "INVITE_TEAM_MEMBER"
    REMOVE_TEAM_MEMBER = "REMOVE_TEAM_MEMBER"
    ROLE_UPDATE = "ROLE_UPDATE"
    CREATE_TASK = "CREATE_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    MOVE_TASK = "MOVE_TASK"
    DELETE_TASK = "DELETE_TASK"
    CREATE_COLUMN = "CREATE_COLUMN"
    UPDATE_COLUMN = "UPDATE_COLUMN"
    DELETE_COLUMN = "DELETE_COLUMN"
    REORDER_COLUMNS = "REORDER_COLUMNS"
    NORMALIZE_BOARD = "NORMALIZE_BOARD"


class ActivityLog(Base):
    """Audit trail of team actions"""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    ip_address = Column(String(45), nullable=True)
