from datetime import datetime

from sqlalchemy.orm import Session

from src.models.log_suivi import LogSuivi


def ecrire_log(db: Session, demande_id: int | None, etat: str, user_id: int | None, message: str) -> LogSuivi:
    """Ajoute une entrée au journal (sans commit : la transaction appelante s'en charge)."""
    log = LogSuivi(
        demande_id=demande_id,
        etat=etat,
        user_id=user_id,
        message=message,
        date_action=datetime.utcnow(),
    )
    db.add(log)
    return log


def list_logs(db: Session, demande_id: int) -> list[LogSuivi]:
    return (
        db.query(LogSuivi)
        .filter(LogSuivi.demande_id == demande_id)
        .order_by(LogSuivi.date_action.asc(), LogSuivi.id.asc())
        .all()
    )


def dernier_traitant(db: Session, demande_id: int) -> int | None:
    """Utilisateur ayant passé la demande en traitement le plus récemment."""
    log = (
        db.query(LogSuivi)
        .filter(LogSuivi.demande_id == demande_id, LogSuivi.etat == "en_traitement")
        .order_by(LogSuivi.date_action.desc(), LogSuivi.id.desc())
        .first()
    )
    return log.user_id if log else None
