import logging

from sqlalchemy.orm import Session

from src.models.signature import Signature
from src.services import stockage

logger = logging.getLogger("uvicorn.error")

TYPES_SIGNATURE = {
    "image": {".png", ".jpg", ".jpeg"},
    "pdf": {".pdf"},
}


def list_signatures(db: Session, user_id: int) -> list[Signature]:
    return (
        db.query(Signature)
        .filter(Signature.user_id == user_id)
        .order_by(Signature.created_at.desc(), Signature.id.desc())
        .all()
    )


def ajouter_signature(db: Session, user_id: int, type_signature: str, fichier=None, texte: str | None = None):
    """Enregistre une signature : fichier image/pdf, ou texte saisi (type ``texte``)."""
    relatif = None
    if type_signature == "texte":
        texte = (texte or "").strip()
        if not texte:
            return "signature_vide"
        url = texte
    elif type_signature in TYPES_SIGNATURE:
        if fichier is None:
            return "fichier_requis"
        nom, contenu = fichier
        err = stockage.verifier_fichier(nom, contenu, TYPES_SIGNATURE[type_signature])
        if err:
            return err
        relatif, url = stockage.enregistrer(f"signatures/{user_id}", nom, contenu)
    else:
        return "type_signature_invalide"

    try:
        sig = Signature(user_id=user_id, type=type_signature, url=url)
        db.add(sig)
        db.commit()
    except Exception:
        db.rollback()
        if relatif:
            stockage.supprimer([relatif])
        logger.exception("Erreur lors de l'enregistrement d'une signature pour %s", user_id)
        raise
    db.refresh(sig)
    return sig


def delete_signature(db: Session, user_id: int, signature_id: int):
    sig = db.query(Signature).filter(Signature.id == signature_id, Signature.user_id == user_id).first()
    if not sig:
        return "signature_introuvable"
    try:
        db.delete(sig)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de la suppression de la signature %s", signature_id)
        raise
    return True
