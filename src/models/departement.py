from sqlalchemy import Column, Integer, String
from src.database import Base


class Departement(Base):
    __tablename__ = "departements"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    nom = Column(String(50), nullable=False, unique=True)
