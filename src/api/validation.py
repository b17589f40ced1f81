from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from src.api.demandes import resultat
from src.api.erreurs import raise_for_code
from src.database import get_db
from src.schemas.demande import ResultatTransitionSchema
from src.schemas.signature import SignatureSchema
from src.schemas.tableau import TableauSchema, construire_tableau
from src.schemas.validation import RejetSchema
from src.security.rbac import Access, get_access, require_role
from src.services import demandes as svc
from src.services import signatures, tableaux
from src.services.catalogue import ROLE_VALIDATEUR


router = APIRouter(prefix="/validation", tags=["Validation"])


@router.get("/tableau", response_model=TableauSchema)
def api_tableau_validation(
    envoyer_rappels: bool = Query(True),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, ROLE_VALIDATEUR)
    return construire_tableau(tableaux.tableau_validation(db, access, envoyer_rappels=envoyer_rappels))


@router.post("/demandes/{demande_id}/valider", response_model=ResultatTransitionSchema)
def api_valider(
    demande_id: int,
    fichier: UploadFile | None = File(None),
    motif: str | None = Form(None),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, ROLE_VALIDATEUR)
    contenu = (fichier.filename or "document.pdf", fichier.file.read()) if fichier else None
    return resultat(svc.valider_demande(db, access, demande_id, contenu, motif))


@router.post("/demandes/{demande_id}/rejeter", response_model=ResultatTransitionSchema)
def api_rejeter(
    demande_id: int,
    payload: RejetSchema,
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, ROLE_VALIDATEUR)
    return resultat(svc.rejeter_demande(db, access, demande_id, payload.motif))


# -------------------- Signatures --------------------
@router.get("/signatures", response_model=list[SignatureSchema])
def api_list_signatures(access: Access = Depends(get_access), db: Session = Depends(get_db)):
    require_role(access, ROLE_VALIDATEUR)
    return signatures.list_signatures(db, access.user_id)


@router.post("/signatures", response_model=SignatureSchema, status_code=201)
def api_ajouter_signature(
    type: Literal["image", "pdf", "texte"] = Form(...),
    texte: str | None = Form(None),
    fichier: UploadFile | None = File(None),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, ROLE_VALIDATEUR)
    contenu = (fichier.filename or "signature", fichier.file.read()) if fichier else None
    res = signatures.ajouter_signature(db, access.user_id, type, fichier=contenu, texte=texte)
    if isinstance(res, str):
        raise_for_code(res)
    return res


@router.delete("/signatures/{signature_id}")
def api_supprimer_signature(signature_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    require_role(access, ROLE_VALIDATEUR)
    res = signatures.delete_signature(db, access.user_id, signature_id)
    if isinstance(res, str):
        raise_for_code(res)
    return {"ok": True}
