"""Machine à états du cycle de vie d'une demande.

Toutes les étapes (soumission, traitement, validation finale, annulation)
passent par ``prochain_statut`` : une transition absente de la table est
interdite, quel que soit l'écran ou l'API qui la demande.
"""
from enum import Enum


class Statut(str, Enum):
    EN_ATTENTE = "en_attente"
    EN_TRAITEMENT = "en_traitement"
    VALIDEE = "validee"
    REJETEE = "rejetee"


class Action(str, Enum):
    SOUMETTRE = "soumettre"
    TRAITER = "traiter"
    ANNULER = "annuler"
    VALIDER = "valider"
    REJETER = "rejeter"


# (statut courant, action) -> nouveau statut ; None = demande inexistante
TRANSITIONS: dict[tuple[Statut | None, Action], Statut] = {
    (None, Action.SOUMETTRE): Statut.EN_ATTENTE,
    (Statut.EN_ATTENTE, Action.TRAITER): Statut.EN_TRAITEMENT,
    (Statut.EN_ATTENTE, Action.ANNULER): Statut.REJETEE,
    (Statut.EN_TRAITEMENT, Action.VALIDER): Statut.VALIDEE,
    (Statut.EN_TRAITEMENT, Action.REJETER): Statut.REJETEE,
}

# Qui déclenche chaque action : "etudiant", "autorite" (rôle du catalogue) ou "dg"
ACTEURS: dict[Action, str] = {
    Action.SOUMETTRE: "etudiant",
    Action.TRAITER: "autorite",
    Action.ANNULER: "etudiant",
    Action.VALIDER: "dg",
    Action.REJETER: "dg",
}

STATUTS_TERMINAUX = frozenset({Statut.VALIDEE, Statut.REJETEE})


def _as_statut(statut) -> Statut | None:
    if statut is None or isinstance(statut, Statut):
        return statut
    try:
        return Statut(statut)
    except ValueError:
        return None


def prochain_statut(statut, action: Action) -> Statut | None:
    """Statut atteint par ``action`` depuis ``statut``, ou None si la transition est interdite."""
    courant = _as_statut(statut)
    if statut is not None and courant is None:
        return None
    return TRANSITIONS.get((courant, Action(action)))


def est_terminal(statut) -> bool:
    return _as_statut(statut) in STATUTS_TERMINAUX


def actions_possibles(statut) -> list[Action]:
    courant = _as_statut(statut)
    if statut is not None and courant is None:
        return []
    return [action for (depart, action) in TRANSITIONS if depart == courant]
