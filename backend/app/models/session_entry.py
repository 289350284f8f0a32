from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from ..database import Base


class SessionEntry(Base):
    """One key of the client session store.  Last write wins."""

    __tablename__ = "session_entries"

    key = Column(String, primary_key=True)
    value_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
