from teamboard.db.base import Base, utcnow
from teamboard.db.database import get_async_session, init_db

__all__ = ["Base", "utcnow", "get_async_session", "init_db"]
