"""Cycle de vie des demandes : soumission, traitement, validation finale, annulation, suppression.

Chaque étape suit le même déroulé :

1. contrôle de la transition via ``workflow.prochain_statut`` et des droits ;
2. écriture des fichiers sur le stockage (avant la transaction) ;
3. une seule transaction : changement de statut conditionnel au statut
   attendu, pièce jointe, validation, journal, notifications ;
4. après commit : courriels et diffusion temps réel.

Si la transaction échoue, les fichiers écrits sont supprimés et l'erreur est
propagée. Les fonctions retournent un ``Resultat`` ou un code d'erreur court.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from src.models.demande import Demande
from src.models.message import Message
from src.models.piece_jointe import PieceJointe
from src.models.utilisateur import Utilisateur
from src.models.validation import Validation
from src.schemas.demande import DemandeCreateSchema
from src.security.rbac import Access
from src.services import journal, stockage
from src.services.catalogue import ROLES_DEPARTEMENT, ROLE_VALIDATEUR, get_type, types_pour_role
from src.services.notifications import Diffusion
from src.services.workflow import ACTEURS, Action, Statut, actions_possibles, est_terminal, prochain_statut

logger = logging.getLogger("uvicorn.error")

AVERTISSEMENT_SANS_AUTORITE = "Aucune autorité trouvée pour traiter cette demande. Contactez l'administrateur."
MOTIF_PAR_DEFAUT = "Non spécifié"


@dataclass
class Resultat:
    demande: Demande
    avertissements: list[str] = field(default_factory=list)


class ConflitStatut(Exception):
    """Le statut a changé entre la lecture et la mise à jour."""


# -------------------- Lecture --------------------
def get_demande(db: Session, demande_id: int) -> Demande | None:
    return db.query(Demande).filter(Demande.id == demande_id).first()


def resoudre_autorites(db: Session, type_demande: str, departement_id: int | None) -> list[Utilisateur]:
    """Utilisateurs compétents pour un type, filtrés par département pour les rôles départementaux."""
    t = get_type(type_demande)
    if t is None:
        return []
    q = db.query(Utilisateur).filter(Utilisateur.role == t.autorite)
    if t.autorite in ROLES_DEPARTEMENT:
        if departement_id is None:
            return []
        q = q.filter(Utilisateur.departement_id == departement_id)
    return q.order_by(Utilisateur.id.asc()).all()


def peut_consulter(access: Access, demande: Demande) -> bool:
    if access.role == "etudiant":
        return demande.etudiant_id == access.user_id
    if access.role == ROLE_VALIDATEUR:
        return True
    return access.peut_traiter(demande.type, demande.departement_id)


def peut_agir(access: Access, action: Action, demande: Demande | None = None) -> bool:
    """Vrai si ``access`` est l'acteur désigné par ``ACTEURS`` pour ``action``."""
    acteur = ACTEURS[Action(action)]
    if acteur == "etudiant":
        return access.role == "etudiant" and (demande is None or demande.etudiant_id == access.user_id)
    if acteur == "autorite":
        return demande is not None and access.peut_traiter(demande.type, demande.departement_id)
    return access.role == acteur


def filtre_perimetre(q, access: Access):
    """Restreint une requête sur Demande à ce que l'utilisateur peut voir."""
    if access.role == "etudiant":
        return q.filter(Demande.etudiant_id == access.user_id)
    if access.role == ROLE_VALIDATEUR:
        return q
    q = q.filter(Demande.type.in_(types_pour_role(access.role)))
    if access.role in ROLES_DEPARTEMENT:
        q = q.filter(Demande.departement_id == access.departement_id)
    return q


def list_demandes(
    db: Session,
    access: Access,
    *,
    statut: str | None = None,
    type_demande: str | None = None,
    page: int = 1,
    taille: int = 20,
) -> tuple[int, list[Demande]]:
    q = filtre_perimetre(db.query(Demande), access)
    if statut is not None:
        q = q.filter(Demande.statut == statut)
    if type_demande is not None:
        q = q.filter(Demande.type == type_demande)
    total = q.count()
    items = (
        q.order_by(Demande.date_soumission.desc(), Demande.id.desc())
        .offset((page - 1) * taille)
        .limit(taille)
        .all()
    )
    return total, items


def get_detail(db: Session, access: Access, demande_id: int):
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    if not peut_consulter(access, demande):
        return "acces_refuse"
    return {
        "demande": demande,
        "pieces_jointes": (
            db.query(PieceJointe)
            .filter(PieceJointe.demande_id == demande_id)
            .order_by(PieceJointe.created_at.asc(), PieceJointe.id.asc())
            .all()
        ),
        "validations": (
            db.query(Validation)
            .filter(Validation.demande_id == demande_id)
            .order_by(Validation.date_validation.asc())
            .all()
        ),
        "logs_suivi": journal.list_logs(db, demande_id),
        "actions": [a.value for a in actions_possibles(demande.statut) if peut_agir(access, a, demande)],
    }


# -------------------- Outils internes --------------------
def _changer_statut(db: Session, demande_id: int, attendu: Statut, nouveau: Statut) -> None:
    n = (
        db.query(Demande)
        .filter(Demande.id == demande_id, Demande.statut == attendu.value)
        .update(
            {Demande.statut: nouveau.value, Demande.date_mise_a_jour: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if n == 0:
        raise ConflitStatut()


def _stocker(demande_id: int, fichiers, extensions=stockage.EXTENSIONS_ACCEPTEES):
    """Contrôle puis écrit les fichiers ; retourne un code d'erreur ou la liste (nom, relatif, url)."""
    for nom, contenu in fichiers:
        err = stockage.verifier_fichier(nom, contenu, extensions)
        if err:
            return err
    ecrits = []
    try:
        for nom, contenu in fichiers:
            relatif, url = stockage.enregistrer(f"demandes/{demande_id}", nom, contenu)
            ecrits.append((nom, relatif, url))
    except OSError:
        stockage.supprimer([r for _, r, _ in ecrits])
        logger.exception("Écriture des fichiers de la demande %s impossible", demande_id)
        raise
    return ecrits


def _ajouter_pieces(db: Session, demande_id: int, ecrits, type_piece: str, nom_fichier: str | None = None) -> list[PieceJointe]:
    pieces = []
    for nom, _, url in ecrits:
        pj = PieceJointe(demande_id=demande_id, nom_fichier=nom_fichier or nom, url=url, type=type_piece)
        db.add(pj)
        pieces.append(pj)
    return pieces


def _echec(db: Session, ecrits, message: str, *args) -> None:
    db.rollback()
    stockage.supprimer([r for _, r, _ in ecrits or []])
    logger.exception(message, *args)


# -------------------- Soumission --------------------
def soumettre_demande(db: Session, access: Access, payload: DemandeCreateSchema, fichiers=()):
    """Crée la demande (en_attente) et prévient l'étudiant et l'autorité compétente.

    ``fichiers`` : itérable de couples (nom de fichier, contenu binaire).
    """
    if not peut_agir(access, Action.SOUMETTRE):
        return "acces_refuse"
    t = get_type(payload.type)
    if t is None:
        return "type_inconnu"
    justification = (payload.justification or "").strip() or None
    if t.requiert_justification and not justification:
        return "justification_requise"
    statut = prochain_statut(None, Action.SOUMETTRE)
    if statut is None:
        return "transition_interdite"
    fichiers = list(fichiers)

    autorites = resoudre_autorites(db, t.id, access.departement_id)
    diffusion = Diffusion()
    ecrits = []
    try:
        demande = Demande(
            titre=t.label,
            type=t.id,
            description=justification,
            etudiant_id=access.user_id,
            nom_complet=access.nom,
            license_level=payload.license_level,
            urgence=payload.urgence,
            delivery_method=payload.delivery_method,
            departement_id=access.departement_id,
            statut=statut.value,
        )
        db.add(demande)
        db.flush()
        ecrits = _stocker(demande.id, fichiers)
        if isinstance(ecrits, str):
            db.rollback()
            return ecrits
        _ajouter_pieces(db, demande.id, ecrits, "student_upload")
        journal.ecrire_log(db, demande.id, statut.value, access.user_id, f"Demande soumise par {access.nom}")

        etudiant = db.get(Utilisateur, access.user_id)
        diffusion.notifier(
            db,
            etudiant,
            f"Votre demande pour {t.label} (ID: {demande.id}) a été soumise avec succès et est en attente de traitement.",
            demande.id,
            sujet=f"Confirmation de soumission: {t.label}",
        )
        for autorite in autorites:
            diffusion.notifier(
                db,
                autorite,
                f"Une nouvelle demande pour {t.label} (ID: {demande.id}) par {access.nom} "
                f"({payload.license_level}) nécessite votre traitement.",
                demande.id,
                sujet=f"Nouvelle demande à traiter: {t.label}",
            )
        db.commit()
    except Exception:
        _echec(db, ecrits if isinstance(ecrits, list) else [], "Erreur lors de la soumission d'une demande %s", t.id)
        raise
    db.refresh(demande)
    logger.info("Demande %s (%s) soumise par l'utilisateur %s", demande.id, t.id, access.user_id)

    avertissements = []
    if not autorites:
        logger.warning("Aucune autorité %s pour la demande %s", t.autorite, demande.id)
        avertissements.append(AVERTISSEMENT_SANS_AUTORITE)
    avertissements.extend(diffusion.envoyer())
    return Resultat(demande, avertissements)


# -------------------- Traitement --------------------
def traiter_demande(db: Session, access: Access, demande_id: int, fichier):
    """Dépose le document traité et passe la demande en traitement.

    ``fichier`` : couple (nom de fichier, contenu) ou None.
    """
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    if not peut_agir(access, Action.TRAITER, demande):
        return "acces_refuse"
    nouveau = prochain_statut(demande.statut, Action.TRAITER)
    if nouveau is None:
        return "transition_interdite"
    if fichier is None:
        return "fichier_requis"

    ecrits = _stocker(demande.id, [fichier])
    if isinstance(ecrits, str):
        return ecrits
    attendu = Statut(demande.statut)
    titre = demande.titre
    diffusion = Diffusion()
    try:
        _ajouter_pieces(db, demande.id, ecrits, "processed")
        _changer_statut(db, demande.id, attendu, nouveau)
        journal.ecrire_log(db, demande.id, nouveau.value, access.user_id, f"Demande traitée par {access.nom}")

        etudiant = db.get(Utilisateur, demande.etudiant_id)
        if etudiant:
            diffusion.notifier(
                db,
                etudiant,
                f"Votre demande de {titre} est en cours de traitement.",
                demande.id,
                sujet=f"Mise à jour de votre demande: {titre}",
            )
        for dg in db.query(Utilisateur).filter(Utilisateur.role == ROLE_VALIDATEUR).order_by(Utilisateur.id).all():
            diffusion.notifier(
                db,
                dg,
                f"Une demande de {titre} est en attente de validation finale. Veuillez vérifier dans l'application.",
                demande.id,
                sujet=f"Nouvelle demande à valider: {titre}",
            )
        db.commit()
    except ConflitStatut:
        db.rollback()
        stockage.supprimer([r for _, r, _ in ecrits])
        logger.warning("Conflit de statut sur la demande %s (traitement)", demande_id)
        return "conflit_statut"
    except Exception:
        _echec(db, ecrits, "Erreur lors du traitement de la demande %s", demande_id)
        raise
    db.refresh(demande)
    logger.info("Demande %s traitée par l'utilisateur %s", demande.id, access.user_id)
    return Resultat(demande, diffusion.envoyer())


# -------------------- Validation finale --------------------
def _notifier_decision(db: Session, diffusion: Diffusion, demande: Demande, decision: str, motif: str | None, url: str | None) -> None:
    titre = demande.titre
    etudiant = db.get(Utilisateur, demande.etudiant_id)
    if decision == "valide":
        if demande.delivery_method == "email":
            msg_etudiant = f"Votre demande de {titre} a été validée. Téléchargez le document signé ici : {url}"
        else:
            msg_etudiant = f"Votre demande de {titre} a été validée. Veuillez récupérer le document signé en personne."
        msg_traitant = f"La demande de {titre} a été validée par le DG."
    else:
        msg_etudiant = f"Votre demande de {titre} a été rejetée. Motif : {motif}."
        msg_traitant = f"La demande de {titre} a été rejetée par le DG: {motif}."
    if etudiant:
        diffusion.notifier(db, etudiant, msg_etudiant, demande.id, sujet=f"Mise à jour de votre demande: {titre}")

    traitant_id = journal.dernier_traitant(db, demande.id)
    traitant = db.get(Utilisateur, traitant_id) if traitant_id else None
    if traitant:
        diffusion.notifier(db, traitant, msg_traitant, demande.id, sujet=f"Mise à jour de la demande: {titre}")

    if decision == "valide" and demande.departement_id is not None:
        chefs = (
            db.query(Utilisateur)
            .filter(Utilisateur.role == "chef_dept", Utilisateur.departement_id == demande.departement_id)
            .all()
        )
        if demande.delivery_method == "email":
            msg_chef = f"La demande de {titre} a été validée par le DG. Le document signé est disponible ici : {url}"
        else:
            msg_chef = f"La demande de {titre} a été validée par le DG. Le document signé est prêt à être récupéré en personne."
        for chef in chefs:
            diffusion.notifier(db, chef, msg_chef, demande.id, sujet=f"Demande validée: {titre}")


def _decider(db: Session, access: Access, demande_id: int, decision: str, motif: str | None, fichier):
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    action = Action.VALIDER if decision == "valide" else Action.REJETER
    if not peut_agir(access, action, demande):
        return "acces_refuse"
    nouveau = prochain_statut(demande.statut, action)
    if nouveau is None:
        return "transition_interdite"

    ecrits = []
    url = None
    if decision == "valide":
        if fichier is None:
            return "document_signe_requis"
        ecrits = _stocker(demande.id, [fichier], extensions={".pdf"})
        if isinstance(ecrits, str):
            return "document_signe_pdf_requis" if ecrits == "format_non_supporte" else ecrits
        url = ecrits[0][2]
    else:
        motif = (motif or "").strip() or MOTIF_PAR_DEFAUT

    attendu = Statut(demande.statut)
    diffusion = Diffusion()
    try:
        # la pièce signée est enregistrée avant le passage à "validee"
        _ajouter_pieces(db, demande.id, ecrits, "signed", nom_fichier=f"signed-{demande.id}.pdf")
        db.flush()
        _changer_statut(db, demande.id, attendu, nouveau)
        db.add(
            Validation(
                demande_id=demande.id,
                user_id=access.user_id,
                role=access.role,
                decision=decision,
                motif=motif,
                date_validation=datetime.utcnow(),
            )
        )
        verbe = "validée" if decision == "valide" else "rejetée"
        suffixe = f": {motif}" if motif else ""
        journal.ecrire_log(db, demande.id, nouveau.value, access.user_id, f"Demande {verbe} par {access.nom}{suffixe}")
        _notifier_decision(db, diffusion, demande, decision, motif, url)
        db.commit()
    except ConflitStatut:
        db.rollback()
        stockage.supprimer([r for _, r, _ in ecrits])
        logger.warning("Conflit de statut sur la demande %s (décision %s)", demande_id, decision)
        return "conflit_statut"
    except Exception:
        _echec(db, ecrits, "Erreur lors de la décision finale sur la demande %s", demande_id)
        raise
    db.refresh(demande)
    logger.info("Demande %s %s par l'utilisateur %s", demande.id, nouveau.value, access.user_id)
    return Resultat(demande, diffusion.envoyer())


def valider_demande(db: Session, access: Access, demande_id: int, fichier, motif: str | None = None):
    """Validation finale : le document signé (PDF) est obligatoire."""
    return _decider(db, access, demande_id, "valide", motif, fichier)


def rejeter_demande(db: Session, access: Access, demande_id: int, motif: str | None):
    return _decider(db, access, demande_id, "rejete", motif, None)


# -------------------- Annulation / suppression (étudiant) --------------------
def annuler_demande(db: Session, access: Access, demande_id: int):
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    if not peut_agir(access, Action.ANNULER, demande):
        return "acces_refuse"
    nouveau = prochain_statut(demande.statut, Action.ANNULER)
    if nouveau is None:
        return "transition_interdite"
    try:
        _changer_statut(db, demande.id, Statut(demande.statut), nouveau)
        journal.ecrire_log(db, demande.id, nouveau.value, access.user_id, f"Demande annulée par l'étudiant {access.nom}")
        db.commit()
    except ConflitStatut:
        db.rollback()
        return "conflit_statut"
    except Exception:
        _echec(db, [], "Erreur lors de l'annulation de la demande %s", demande_id)
        raise
    db.refresh(demande)
    logger.info("Demande %s annulée par l'étudiant %s", demande.id, access.user_id)
    return Resultat(demande)


def supprimer_demande(db: Session, access: Access, demande_id: int):
    """Supprime une demande terminée ; l'entrée de journal ``supprimee`` reste."""
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    # même acteur que l'annulation : l'étudiant auteur
    if not peut_agir(access, Action.ANNULER, demande):
        return "acces_refuse"
    if not est_terminal(demande.statut):
        return "demande_non_terminee"
    try:
        journal.ecrire_log(db, demande.id, "supprimee", access.user_id, f"Demande supprimée par {access.nom}")
        db.query(PieceJointe).filter(PieceJointe.demande_id == demande.id).delete(synchronize_session=False)
        db.query(Validation).filter(Validation.demande_id == demande.id).delete(synchronize_session=False)
        db.query(Message).filter(Message.demande_id == demande.id).delete(synchronize_session=False)
        db.delete(demande)
        db.commit()
    except Exception:
        _echec(db, [], "Erreur lors de la suppression de la demande %s", demande_id)
        raise
    logger.info("Demande %s supprimée par l'étudiant %s", demande_id, access.user_id)
    return True
