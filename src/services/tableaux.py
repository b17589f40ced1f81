"""Tableaux de bord par rôle : compteurs, demandes récentes, rappels par e-mail."""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.models.demande import Demande
from src.security.rbac import Access
from src.services.demandes import filtre_perimetre
from src.services.notifications import MAX_COURRIELS_PAR_CHARGEMENT, Diffusion, list_notifications
from src.services.workflow import Statut

logger = logging.getLogger("uvicorn.error")

NB_RECENTES = 5
NB_NOTIFICATIONS = 10


def _stats(q) -> dict:
    stats = {s.value: 0 for s in Statut}
    rows = q.with_entities(Demande.statut, func.count(Demande.id)).group_by(Demande.statut).all()
    for statut, n in rows:
        if statut in stats:
            stats[statut] = n
    return stats


def _recentes(q, statut: Statut | None = None) -> list[Demande]:
    if statut is not None:
        q = q.filter(Demande.statut == statut.value)
    return q.order_by(Demande.date_soumission.desc(), Demande.id.desc()).limit(NB_RECENTES).all()


def _rappels(access: Access, demandes: list[Demande], etape: str) -> list[str]:
    diffusion = Diffusion()
    for d in demandes:
        diffusion.courriel(
            access.email,
            f"Rappel: {d.titre} (ID: {d.id})",
            f"La demande de {d.titre} (ID: {d.id}) de {d.nom_complet} est toujours {etape}.",
        )
    return diffusion.envoyer(limite=MAX_COURRIELS_PAR_CHARGEMENT)


def tableau_etudiant(db: Session, access: Access) -> dict:
    q = filtre_perimetre(db.query(Demande), access)
    return {
        "stats": _stats(q),
        "recentes": _recentes(q),
        "notifications": list_notifications(db, access.user_id, limit=NB_NOTIFICATIONS),
        "avertissements": [],
    }


def tableau_traitement(db: Session, access: Access, envoyer_rappels: bool = True) -> dict:
    q = filtre_perimetre(db.query(Demande), access)
    avertissements = []
    if envoyer_rappels:
        en_attente = q.filter(Demande.statut == Statut.EN_ATTENTE.value).order_by(Demande.date_soumission.asc()).all()
        avertissements = _rappels(access, en_attente, "en attente de traitement")
    return {
        "stats": _stats(q),
        "recentes": _recentes(q),
        "notifications": list_notifications(db, access.user_id, limit=NB_NOTIFICATIONS),
        "avertissements": avertissements,
    }


def tableau_validation(db: Session, access: Access, envoyer_rappels: bool = True) -> dict:
    q = db.query(Demande)
    stats = _stats(q)
    stats[Statut.EN_ATTENTE.value] = 0
    avertissements = []
    if envoyer_rappels:
        en_traitement = (
            q.filter(Demande.statut == Statut.EN_TRAITEMENT.value).order_by(Demande.date_mise_a_jour.asc()).all()
        )
        avertissements = _rappels(access, en_traitement, "en attente de validation finale")
    return {
        "stats": stats,
        "recentes": _recentes(q, Statut.EN_TRAITEMENT),
        "notifications": list_notifications(db, access.user_id, limit=NB_NOTIFICATIONS),
        "avertissements": avertissements,
    }
