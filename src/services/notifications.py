"""Notifications in-app et courriels envoyés à chaque étape d'une demande.

Les lignes ``notifications`` sont ajoutées dans la transaction de l'étape ;
les courriels et la diffusion temps réel partent après le commit. Un échec
d'envoi devient un avertissement, jamais une erreur.
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from src.models.notification import Notification
from src.models.utilisateur import Utilisateur
from src.schemas.notification import NotificationSchema
from src.schemas.validators import email_valide
from src.services import mailer
from src.services.realtime import canal_notifications, hub

logger = logging.getLogger("uvicorn.error")

MAX_COURRIELS_PAR_CHARGEMENT = 5
AVERTISSEMENT_LIMITE = "Limite d'envoi d'e-mails atteinte. Certaines notifications n'ont pas été envoyées."


@dataclass
class Courriel:
    destinataire: str
    sujet: str
    texte: str


@dataclass
class Diffusion:
    """Destinataires d'une étape : notifications en attente de commit, courriels à envoyer."""
    notifications: list[Notification] = field(default_factory=list)
    courriels: list[Courriel] = field(default_factory=list)
    avertissements: list[str] = field(default_factory=list)

    def notifier(
        self,
        db: Session,
        user: Utilisateur,
        message: str,
        demande_id: int | None = None,
        sujet: str | None = None,
        texte: str | None = None,
    ) -> Notification:
        notif = Notification(user_id=user.id, message=message, demande_id=demande_id, lue=False)
        db.add(notif)
        self.notifications.append(notif)
        if sujet:
            self.courriel(user.email, sujet, texte or message)
        return notif

    def courriel(self, destinataire: str | None, sujet: str, texte: str) -> None:
        if not email_valide(destinataire):
            logger.warning("Adresse e-mail invalide ignorée : %r", destinataire)
            self.avertissements.append(f"Adresse e-mail invalide : {destinataire or '(vide)'}")
            return
        self.courriels.append(Courriel(destinataire, sujet, texte))

    def envoyer(self, limite: int | None = None) -> list[str]:
        """À appeler après le commit : envoie les courriels et publie les notifications."""
        for notif in self.notifications:
            publier_notification(notif)

        courriels = self.courriels
        if limite is not None and len(courriels) > limite:
            logger.warning("Limite de %s courriels atteinte, %s non envoyés", limite, len(courriels) - limite)
            courriels = courriels[:limite]
            self.avertissements.append(AVERTISSEMENT_LIMITE)
        for c in courriels:
            try:
                res = mailer.send_email(c.destinataire, c.sujet, c.texte)
            except Exception as exc:
                logger.exception("Courriel non envoyé à %s", c.destinataire)
                res = mailer.EnvoiResultat(success=False, error=str(exc) or exc.__class__.__name__)
            if not res.success:
                logger.warning("Courriel non envoyé à %s : %s", c.destinataire, res.error)
                self.avertissements.append(f"Échec de l'envoi de l'e-mail à {c.destinataire} : {res.error}")
        return self.avertissements


def publier_notification(notif: Notification) -> None:
    payload = NotificationSchema.model_validate(notif).model_dump()
    hub.publish(canal_notifications(notif.user_id), payload)


# -------------------- Lecture / mise à jour --------------------
def list_notifications(db: Session, user_id: int, *, non_lues: bool = False, limit: int | None = None) -> list[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if non_lues:
        q = q.filter(Notification.lue.is_(False))
    q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def count_non_lues(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.lue.is_(False)).count()


def _get_own(db: Session, user_id: int, notification_id: int) -> Notification | None:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )


def marquer_lue(db: Session, user_id: int, notification_id: int):
    notif = _get_own(db, user_id, notification_id)
    if not notif:
        return "notification_introuvable"
    try:
        notif.lue = True
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors du marquage de la notification %s", notification_id)
        raise
    db.refresh(notif)
    return notif


def marquer_toutes_lues(db: Session, user_id: int) -> int:
    try:
        n = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.lue.is_(False))
            .update({Notification.lue: True}, synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors du marquage des notifications de l'utilisateur %s", user_id)
        raise
    return n


def delete_notification(db: Session, user_id: int, notification_id: int):
    notif = _get_own(db, user_id, notification_id)
    if not notif:
        return "notification_introuvable"
    try:
        db.delete(notif)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de la suppression de la notification %s", notification_id)
        raise
    return True
