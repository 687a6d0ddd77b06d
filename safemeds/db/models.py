from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from safemeds.db.database import Base


class StorageSlot(Base):
    """A named slot holding one serialized document.

    The app keeps a single user's profile in one slot and overwrites it
    wholesale on every save; there is no partial update or history.
    """
    __tablename__ = "storage_slots"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<StorageSlot key={self.key} updated_at={self.updated_at}>"
