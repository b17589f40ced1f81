from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from src.api.demandes import resultat
from src.database import get_db
from src.schemas.demande import DemandePageSchema, DemandeSchema, ResultatTransitionSchema
from src.schemas.tableau import TableauSchema, construire_tableau
from src.security.rbac import Access, get_access, require_role
from src.services import demandes as svc
from src.services import tableaux
from src.services.catalogue import ROLES_AUTORITE


router = APIRouter(prefix="/traitement", tags=["Traitement"])


@router.get("/tableau", response_model=TableauSchema)
def api_tableau_traitement(
    envoyer_rappels: bool = Query(True),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, *ROLES_AUTORITE)
    return construire_tableau(tableaux.tableau_traitement(db, access, envoyer_rappels=envoyer_rappels))


@router.get("/demandes", response_model=DemandePageSchema, summary="Demandes relevant de l'autorité connectée")
def api_demandes_a_traiter(
    statut: str | None = Query("en_attente"),
    page: int = Query(1, ge=1),
    taille: int = Query(20, ge=1, le=100),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, *ROLES_AUTORITE)
    total, items = svc.list_demandes(db, access, statut=statut or None, page=page, taille=taille)
    return DemandePageSchema(
        total=total,
        page=page,
        taille=taille,
        demandes=[DemandeSchema.model_validate(d) for d in items],
    )


@router.post("/demandes/{demande_id}", response_model=ResultatTransitionSchema, summary="Déposer le document traité")
def api_traiter(
    demande_id: int,
    fichier: UploadFile | None = File(None),
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    require_role(access, *ROLES_AUTORITE)
    contenu = (fichier.filename or "document", fichier.file.read()) if fichier else None
    return resultat(svc.traiter_demande(db, access, demande_id, contenu))
