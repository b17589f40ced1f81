"""Contrôle d'accès par rôle : un utilisateur a un rôle et, éventuellement, un département."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from src.database import get_db
from src.models.utilisateur import Utilisateur
from src.services.catalogue import ROLES_DEPARTEMENT, autorite_pour


@dataclass
class Access:
    user_id: int
    role: str
    nom: str
    email: str
    departement_id: Optional[int] = None

    def has_role(self, *roles: str) -> bool:
        return self.role in roles

    def peut_traiter(self, type_demande: str, departement_id: Optional[int]) -> bool:
        """Vrai si l'utilisateur est l'autorité compétente pour ce type (et ce département)."""
        autorite = autorite_pour(type_demande)
        if autorite is None or self.role != autorite:
            return False
        if autorite in ROLES_DEPARTEMENT:
            return self.departement_id is not None and self.departement_id == departement_id
        return True


def load_access(db: Session, user_id: int) -> Optional[Access]:
    """Charge l'utilisateur courant ; None si le compte n'existe plus."""
    user = db.query(Utilisateur).filter(Utilisateur.id == user_id).first()
    if not user:
        return None
    return Access(
        user_id=user.id,
        role=user.role,
        nom=user.nom,
        email=user.email,
        departement_id=user.departement_id,
    )


def extract_user_context(request: Request) -> Optional[int]:
    """Récupère l'identifiant utilisateur injecté par le middleware (token)."""
    state_ctx = getattr(request.state, "user_ctx", None)
    if not state_ctx:
        return None
    return state_ctx.get("user_id")


def get_access(request: Request, db: Session = Depends(get_db)) -> Access:
    """Dépendance FastAPI : utilisateur authentifié obligatoire."""
    user_id = extract_user_context(request)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Non authentifié")
    access = load_access(db, user_id)
    if access is None:
        raise HTTPException(status_code=401, detail="Session invalide")
    return access


def require_role(access: Access, *roles: str) -> None:
    """Lève une exception HTTP 403 si le rôle n'est pas autorisé."""
    if not access.has_role(*roles):
        raise HTTPException(status_code=403, detail="Accès refusé")
