import logging

from sqlalchemy.orm import Session

from src.models.departement import Departement
from src.models.utilisateur import Utilisateur
from src.schemas.utilisateur import DEPARTEMENTS, ConnexionSchema, InscriptionSchema
from src.security.auth import encode_token, hash_password, verify_password
from src.services import journal, stockage
from src.services.catalogue import ROLES_AUTORITE, ROLES_DEPARTEMENT

logger = logging.getLogger("uvicorn.error")


def ensure_departements(db: Session) -> int:
    """Crée les départements de référence manquants ; retourne le nombre ajouté."""
    existants = {d.nom for d in db.query(Departement).all()}
    ajoutes = 0
    for nom in DEPARTEMENTS:
        if nom not in existants:
            db.add(Departement(nom=nom))
            ajoutes += 1
    if ajoutes:
        db.commit()
    return ajoutes


def get_departement_id(db: Session, nom: str | None) -> int | None:
    if not nom:
        return None
    dep = db.query(Departement).filter(Departement.nom == nom).first()
    return dep.id if dep else None


def get_utilisateur(db: Session, user_id: int) -> Utilisateur | None:
    return db.query(Utilisateur).filter(Utilisateur.id == user_id).first()


def inscrire(db: Session, payload: InscriptionSchema):
    if db.query(Utilisateur).filter(Utilisateur.email == payload.email).first():
        return "email_deja_utilise"
    departement_id = get_departement_id(db, payload.department)
    if payload.department and departement_id is None:
        return "departement_introuvable"

    if payload.role in ROLES_AUTORITE:
        q = db.query(Utilisateur).filter(Utilisateur.role == payload.role)
        if payload.role in ROLES_DEPARTEMENT:
            q = q.filter(Utilisateur.departement_id == departement_id)
        if q.first():
            return "role_deja_attribue"

    try:
        user = Utilisateur(
            nom=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            role=payload.role,
            departement_id=departement_id,
        )
        db.add(user)
        db.flush()
        journal.ecrire_log(db, None, "inscription", user.id, f"Inscription de {user.nom} ({user.role})")
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de l'inscription de %s", payload.email)
        raise
    db.refresh(user)
    logger.info("Nouvel utilisateur %s (%s)", user.id, user.role)
    return user


def connecter(db: Session, payload: ConnexionSchema):
    """Retourne (utilisateur, token) ou un code d'erreur."""
    user = db.query(Utilisateur).filter(Utilisateur.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        return "identifiants_invalides"
    if user.role != payload.role:
        return "role_incorrect"
    if user.departement_id != get_departement_id(db, payload.department):
        return "departement_incorrect"
    try:
        journal.ecrire_log(db, None, "connexion", user.id, f"Connexion de {user.nom}")
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de la connexion de l'utilisateur %s", user.id)
        raise
    return user, encode_token(user.id, user.role, user.departement_id)


def update_nom(db: Session, user_id: int, nom: str):
    user = get_utilisateur(db, user_id)
    if not user:
        return "utilisateur_introuvable"
    try:
        user.nom = nom
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Erreur lors de la mise à jour du profil %s", user_id)
        raise
    db.refresh(user)
    return user


def update_avatar(db: Session, user_id: int, nom_fichier: str, contenu: bytes):
    user = get_utilisateur(db, user_id)
    if not user:
        return "utilisateur_introuvable"
    err = stockage.verifier_fichier(nom_fichier, contenu, stockage.EXTENSIONS_AVATAR)
    if err:
        return err
    relatif, url = stockage.enregistrer(f"avatars/{user_id}", nom_fichier, contenu)
    try:
        user.avatar_url = url
        db.commit()
    except Exception:
        db.rollback()
        stockage.supprimer([relatif])
        logger.exception("Erreur lors de la mise à jour de l'avatar %s", user_id)
        raise
    db.refresh(user)
    return user
