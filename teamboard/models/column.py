from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from teamboard.db.base import Base, utcnow


class KanbanColumn(Base):
    """Column of a team board.

    ``order`` is a sort hint, not a dense index: duplicates are allowed and
    ties are broken by ``id``. The column with ``order == 1`` is the team's
    fallback column, which receives the tasks of deleted columns.
    """

    __tablename__ = "kanban_columns"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
