from datetime import datetime

from sqlalchemy import Boolean, Column, Integer, Text, DateTime, ForeignKey
from src.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    demande_id = Column(Integer, nullable=True)
    lue = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
