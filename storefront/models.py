from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class StorageEntry(Base):
    """One durable key/value entry shared by every execution context.

    A NULL value means the key was removed. The row is kept so that its
    revision keeps increasing and watchers can see the removal.
    """

    __tablename__ = "storage_entries"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    revision = Column(Integer, nullable=False, default=1)
    writer_id = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
