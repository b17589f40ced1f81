from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from src.database import Base


class Demande(Base):
    __tablename__ = "demandes"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    titre = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=True)
    etudiant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    nom_complet = Column(String(200), nullable=True)
    license_level = Column(String(5), nullable=True)
    urgence = Column(String(10), nullable=False, default="normal")
    delivery_method = Column(String(20), nullable=False, default="email")
    departement_id = Column(Integer, ForeignKey("departements.id"), nullable=True)
    statut = Column(String(20), nullable=False, default="en_attente", index=True)
    date_soumission = Column(DateTime, nullable=False, default=datetime.utcnow)
    date_mise_a_jour = Column(DateTime, nullable=False, default=datetime.utcnow)
