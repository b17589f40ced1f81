import logging

from sqlalchemy.orm import Session

from src.models.message import Message
from src.models.notification import Notification
from src.models.utilisateur import Utilisateur
from src.schemas.message import MessageCreateSchema, MessageSchema
from src.security.rbac import Access
from src.services.demandes import AVERTISSEMENT_SANS_AUTORITE, get_demande, peut_consulter, resoudre_autorites
from src.services.notifications import Diffusion
from src.services.realtime import canal_messages, hub

logger = logging.getLogger("uvicorn.error")


def _serialiser(message: Message, auteur: str | None) -> dict:
    return MessageSchema.model_validate(message).model_copy(update={"auteur": auteur}).model_dump()


def list_messages(db: Session, access: Access, demande_id: int):
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"
    if not peut_consulter(access, demande):
        return "acces_refuse"
    rows = (
        db.query(Message, Utilisateur.nom)
        .outerjoin(Utilisateur, Utilisateur.id == Message.user_id)
        .filter(Message.demande_id == demande_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    return [_serialiser(m, nom) for m, nom in rows]


def envoyer_message(db: Session, access: Access, demande_id: int, payload: MessageCreateSchema):
    """Ajoute un message au fil de la demande et notifie l'interlocuteur.

    Étudiant -> première autorité compétente ; autorité -> étudiant.
    Retourne (message sérialisé, avertissements) ou un code d'erreur.
    """
    demande = get_demande(db, demande_id)
    if not demande:
        return "demande_introuvable"

    avertissements = []
    if access.role == "etudiant" and demande.etudiant_id == access.user_id:
        is_admin = False
        autorites = resoudre_autorites(db, demande.type, demande.departement_id)
        destinataire = autorites[0] if autorites else None
        if destinataire is None:
            logger.warning("Message sur la demande %s sans autorité destinataire", demande_id)
            avertissements.append(AVERTISSEMENT_SANS_AUTORITE)
    elif access.peut_traiter(demande.type, demande.departement_id):
        is_admin = True
        destinataire = db.get(Utilisateur, demande.etudiant_id)
    else:
        return "acces_refuse"

    diffusion = Diffusion()
    try:
        message = Message(demande_id=demande.id, user_id=access.user_id, content=payload.content, is_admin=is_admin)
        db.add(message)
        if destinataire is not None:
            diffusion.notifier(
                db,
                destinataire,
                f'Nouveau message de {access.nom} pour la demande {demande.titre} (Ref: {demande.id}): '
                f'"{payload.content[:50]}..."',
                demande.id,
            )
        if is_admin and payload.notification_id is not None:
            (
                db.query(Notification)
                .filter(Notification.id == payload.notification_id, Notification.user_id == access.user_id)
                .update({Notification.lue: True}, synchronize_session=False)
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de l'envoi d'un message sur la demande %s", demande_id)
        raise
    db.refresh(message)

    data = _serialiser(message, access.nom)
    hub.publish(canal_messages(demande.id), data)
    avertissements.extend(diffusion.envoyer())
    return data, avertissements
