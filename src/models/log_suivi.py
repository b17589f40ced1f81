from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime
from src.database import Base


class LogSuivi(Base):
    __tablename__ = "logs_suivi"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    # Pas de FK : le journal doit survivre à la suppression de la demande
    demande_id = Column(Integer, nullable=True, index=True)
    etat = Column(String(20), nullable=False)
    user_id = Column(Integer, nullable=False)
    message = Column(Text, nullable=True)
    date_action = Column(DateTime, nullable=False, default=datetime.utcnow)
