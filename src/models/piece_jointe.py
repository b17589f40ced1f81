from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from src.database import Base


class PieceJointe(Base):
    __tablename__ = "pieces_jointes"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    demande_id = Column(Integer, ForeignKey("demandes.id"), nullable=False, index=True)
    nom_fichier = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    # student_upload | processed | signed
    type = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
