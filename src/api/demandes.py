from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from src.api.erreurs import raise_for_code
from src.database import get_db
from src.schemas.demande import (
    DemandeCreateSchema,
    DemandeDetailSchema,
    DemandePageSchema,
    DemandeSchema,
    ResultatTransitionSchema,
    TypeDemandeSchema,
)
from src.schemas.log_suivi import LogSuiviSchema
from src.schemas.piece_jointe import PieceJointeSchema
from src.schemas.tableau import TableauSchema, construire_tableau
from src.schemas.validation import ValidationSchema
from src.security.rbac import Access, get_access, require_role
from src.services import demandes as svc
from src.services import tableaux
from src.services.catalogue import TYPES_DEMANDE


router = APIRouter(prefix="", tags=["Demandes"])


def resultat(res) -> ResultatTransitionSchema:
    if isinstance(res, str):
        raise_for_code(res)
    return ResultatTransitionSchema(demande=DemandeSchema.model_validate(res.demande), avertissements=res.avertissements)


@router.get("/types-demande", response_model=list[TypeDemandeSchema])
def api_types_demande():
    return [TypeDemandeSchema(**vars(t)) for t in TYPES_DEMANDE.values()]


@router.post("/demandes", response_model=ResultatTransitionSchema, status_code=201, summary="Soumettre une demande")
def api_soumettre(
    type: str = Form(...),
    license_level: Literal["L1", "L2", "L3"] = Form(...),
    urgence: Literal["normal", "urgent"] = Form("normal"),
    delivery_method: Literal["email", "in_person"] = Form("email"),
    justification: str | None = Form(None),
    fichiers: list[UploadFile] | None = File(None),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, "etudiant")
    payload = DemandeCreateSchema(
        type=type,
        license_level=license_level,
        urgence=urgence,
        delivery_method=delivery_method,
        justification=justification,
    )
    contenus = [(f.filename or "document", f.file.read()) for f in (fichiers or [])]
    return resultat(svc.soumettre_demande(db, access, payload, contenus))


@router.get("/demandes", response_model=DemandePageSchema)
def api_list_demandes(
    statut: str | None = Query(None),
    type: str | None = Query(None),
    page: int = Query(1, ge=1),
    taille: int = Query(20, ge=1, le=100),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    total, items = svc.list_demandes(db, access, statut=statut, type_demande=type, page=page, taille=taille)
    return DemandePageSchema(
        total=total,
        page=page,
        taille=taille,
        demandes=[DemandeSchema.model_validate(d) for d in items],
    )


@router.get("/demandes/tableau", response_model=TableauSchema, summary="Tableau de bord étudiant")
def api_tableau_etudiant(access: Access = Depends(get_access), db: Session = Depends(get_db)):
    require_role(access, "etudiant")
    return construire_tableau(tableaux.tableau_etudiant(db, access))


@router.get("/demandes/{demande_id}", response_model=DemandeDetailSchema)
def api_get_demande(demande_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    res = svc.get_detail(db, access, demande_id)
    if isinstance(res, str):
        raise_for_code(res)
    base = DemandeSchema.model_validate(res["demande"]).model_dump()
    return DemandeDetailSchema(
        **base,
        pieces_jointes=[PieceJointeSchema.model_validate(p) for p in res["pieces_jointes"]],
        validations=[ValidationSchema.model_validate(v) for v in res["validations"]],
        logs_suivi=[LogSuiviSchema.model_validate(log) for log in res["logs_suivi"]],
        actions=res["actions"],
    )


@router.post("/demandes/{demande_id}/annuler", response_model=ResultatTransitionSchema)
def api_annuler(demande_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    require_role(access, "etudiant")
    return resultat(svc.annuler_demande(db, access, demande_id))


@router.delete("/demandes/{demande_id}", summary="Supprimer une demande terminée")
def api_supprimer(demande_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    require_role(access, "etudiant")
    res = svc.supprimer_demande(db, access, demande_id)
    if isinstance(res, str):
        raise_for_code(res)
    return {"ok": True}
