from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from src.database import Base


class Validation(Base):
    __tablename__ = "validations"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    demande_id = Column(Integer, ForeignKey("demandes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(30), nullable=False)
    decision = Column(String(10), nullable=False)
    motif = Column(Text, nullable=True)
    date_validation = Column(DateTime, nullable=False, default=datetime.utcnow)
