"""Stockage des fichiers joints aux demandes (disque local, servi en statique)."""
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger("uvicorn.error")

TAILLE_MAX = 5 * 1024 * 1024
EXTENSIONS_ACCEPTEES = {".pdf", ".jpg", ".jpeg", ".png"}
EXTENSIONS_AVATAR = {".jpg", ".jpeg", ".png"}


def storage_dir() -> Path:
    return Path(os.getenv("GOPAC_STORAGE_DIR", "uploads"))


def public_url() -> str:
    return os.getenv("GOPAC_PUBLIC_URL", "http://localhost:8000/fichiers").rstrip("/")


def extension(nom_fichier: str) -> str:
    return os.path.splitext(nom_fichier or "")[1].lower()


def verifier_fichier(nom_fichier: str, contenu: bytes, extensions=EXTENSIONS_ACCEPTEES) -> str | None:
    """Retourne un code d'erreur si le fichier est refusé, sinon None."""
    if not contenu:
        return "fichier_vide"
    if len(contenu) > TAILLE_MAX:
        return "fichier_trop_volumineux"
    if extension(nom_fichier) not in extensions:
        return "format_non_supporte"
    return None


def enregistrer(dossier: str, nom_fichier: str, contenu: bytes) -> tuple[str, str]:
    """Écrit le fichier sous ``dossier`` et retourne (chemin relatif, url publique)."""
    nom_sur = f"{uuid.uuid4().hex}{extension(nom_fichier)}"
    relatif = f"{dossier.strip('/')}/{nom_sur}"
    cible = storage_dir() / relatif
    cible.parent.mkdir(parents=True, exist_ok=True)
    cible.write_bytes(contenu)
    return relatif, f"{public_url()}/{relatif}"


def supprimer(relatifs) -> None:
    """Suppression compensatoire : les erreurs sont journalisées sans interrompre."""
    for relatif in relatifs:
        try:
            (storage_dir() / relatif).unlink(missing_ok=True)
        except OSError:
            logger.exception("Impossible de supprimer le fichier %s", relatif)
