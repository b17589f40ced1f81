from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from src.api.erreurs import raise_for_code
from src.database import get_db
from src.schemas.utilisateur import ProfilUpdateSchema, UtilisateurSchema
from src.security.rbac import Access, get_access
from src.services import utilisateurs as svc


router = APIRouter(prefix="/utilisateurs", tags=["Utilisateurs"])


def _ou_erreur(res):
    if isinstance(res, str):
        raise_for_code(res)
    return res


@router.get("/moi", response_model=UtilisateurSchema)
def api_moi(access: Access = Depends(get_access), db: Session = Depends(get_db)):
    return _ou_erreur(svc.get_utilisateur(db, access.user_id) or "utilisateur_introuvable")


@router.put("/moi", response_model=UtilisateurSchema)
def api_update_moi(payload: ProfilUpdateSchema, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    return _ou_erreur(svc.update_nom(db, access.user_id, payload.nom))


@router.post("/moi/avatar", response_model=UtilisateurSchema)
def api_update_avatar(
    fichier: UploadFile = File(...),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    return _ou_erreur(svc.update_avatar(db, access.user_id, fichier.filename or "avatar", fichier.file.read()))
