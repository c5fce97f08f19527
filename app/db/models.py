from sqlalchemy import Column, String, DateTime, Text

from app.db.session import Base
from app.utils.time import utcnow


class KeyValueEntry(Base):
    """One durable JSON blob per stable key (coin snapshot, favorites)."""

    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
