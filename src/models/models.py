from src.database import Base
from .departement import Departement
from .utilisateur import Utilisateur
from .demande import Demande
from .piece_jointe import PieceJointe
from .validation import Validation
from .log_suivi import LogSuivi
from .notification import Notification
from .message import Message
from .signature import Signature


__all__ = [
    "Base",
    "Departement",
    "Utilisateur",
    "Demande",
    "PieceJointe",
    "Validation",
    "LogSuivi",
    "Notification",
    "Message",
    "Signature",
]
