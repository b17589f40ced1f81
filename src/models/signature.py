from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from src.database import Base


class Signature(Base):
    __tablename__ = "signatures"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # image | pdf | texte
    type = Column(String(10), nullable=False)
    url = Column(String(500), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
