from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from src.database import Base


class Utilisateur(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    nom = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    # etudiant | chef_dept | directeur_prog | dae | secretaire_dg | dg
    role = Column(String(30), nullable=False, index=True)
    departement_id = Column(Integer, ForeignKey("departements.id"), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
