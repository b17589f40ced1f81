import re
from datetime import datetime
from email.utils import parseaddr

# une seule adresse : ni liste (, ;), ni guillemets, ni chevrons
EMAIL_RE = re.compile(r"^[^@\s,;\"'<>]+@[^@\s,;\"'<>]+\.[^@\s,;\"'<>]+$")


def format_date(v):
    """
    Convertit un datetime en str ISO (à la seconde près).
    Si v n'est pas un datetime, le renvoie tel quel.
    """
    if isinstance(v, datetime):
        return v.isoformat(sep=" ", timespec="seconds")
    return v


def email_valide(email: str | None) -> bool:
    """Vrai si ``email`` est exactement une adresse, sans nom d'affichage."""
    if not email or EMAIL_RE.match(email) is None:
        return False
    return parseaddr(email) == ("", email)
