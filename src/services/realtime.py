"""Canaux temps réel en mémoire (publication / abonnement).

Un canal est une simple chaîne, par exemple ``messages:demande_id=12`` ou
``notifications:user_id=3``. Les abonnés reçoivent chaque ligne publiée et
la fusionnent dans leur liste locale par identifiant.
"""
import logging
import threading
from typing import Callable

logger = logging.getLogger("uvicorn.error")


def canal_messages(demande_id: int) -> str:
    return f"messages:demande_id={demande_id}"


def canal_notifications(user_id: int) -> str:
    return f"notifications:user_id={user_id}"


class RealtimeHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._abonnes: dict[str, list[Callable[[dict], None]]] = {}

    def subscribe(self, channel: str, callback: Callable[[dict], None]) -> Callable[[], None]:
        """Abonne ``callback`` au canal ; retourne la fonction de désabonnement."""
        with self._lock:
            self._abonnes.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._abonnes.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._abonnes.pop(channel, None)

        return unsubscribe

    def publish(self, channel: str, payload: dict) -> int:
        """Diffuse ``payload`` ; retourne le nombre d'abonnés notifiés."""
        with self._lock:
            callbacks = list(self._abonnes.get(channel, []))
        livres = 0
        for callback in callbacks:
            try:
                callback(payload)
                livres += 1
            except Exception:
                # un abonné défaillant ne bloque pas les autres
                logger.exception("Abonné en erreur sur le canal %s", channel)
        return livres


hub = RealtimeHub()
