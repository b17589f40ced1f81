import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from src.api.erreurs import raise_for_code
from src import database
from src.database import get_db
from src.schemas.message import MessageCreateSchema, MessageEnvoyeSchema, MessageSchema
from src.security.auth import decode_token
from src.security.rbac import Access, get_access, load_access
from src.services import messages as svc
from src.services.demandes import get_demande, peut_consulter
from src.services.realtime import canal_messages, canal_notifications, hub

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="", tags=["Messages"])


@router.get("/demandes/{demande_id}/messages", response_model=list[MessageSchema])
def api_list_messages(demande_id: int, access: Access = Depends(get_access), db: Session = Depends(get_db)):
    res = svc.list_messages(db, access, demande_id)
    if isinstance(res, str):
        raise_for_code(res)
    return res


@router.post("/demandes/{demande_id}/messages", response_model=MessageEnvoyeSchema, status_code=201)
def api_envoyer_message(
    demande_id: int,
    payload: MessageCreateSchema,
    access: Access = Depends(get_access),
    db: Session = Depends(get_db),
):
    res = svc.envoyer_message(db, access, demande_id, payload)
    if isinstance(res, str):
        raise_for_code(res)
    message, avertissements = res
    return MessageEnvoyeSchema(message=message, avertissements=avertissements)


# -------------------- WebSockets --------------------
def _access_websocket(websocket: WebSocket, db: Session, token: str | None) -> Access | None:
    token = token or websocket.cookies.get("auth_token")
    data = decode_token(token) if token else None
    if not data:
        return None
    return load_access(db, data.get("uid"))


async def _relayer(websocket: WebSocket, canal: str) -> None:
    """Transmet au client chaque ligne publiée sur ``canal`` jusqu'à la déconnexion."""
    loop = asyncio.get_running_loop()
    file: asyncio.Queue = asyncio.Queue()
    unsubscribe = hub.subscribe(canal, lambda payload: loop.call_soon_threadsafe(file.put_nowait, payload))
    await websocket.accept()

    async def envoyer():
        while True:
            await websocket.send_json(await file.get())

    async def ecouter():
        # le client n'envoie rien d'utile : on attend la fermeture
        while True:
            await websocket.receive_text()

    taches = [asyncio.ensure_future(envoyer()), asyncio.ensure_future(ecouter())]
    try:
        await asyncio.wait(taches, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unsubscribe()
        for t in taches:
            t.cancel()
        for t in taches:
            exc = t.exception() if t.done() and not t.cancelled() else None
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("WebSocket %s fermé sur erreur : %r", canal, exc)


@router.websocket("/ws/demandes/{demande_id}/messages")
async def ws_messages(websocket: WebSocket, demande_id: int, token: str | None = None):
    # session courte : aucune connexion du pool n'est gardée pendant la vie du socket
    db = database.SessionLocal()
    try:
        access = _access_websocket(websocket, db, token)
        demande = get_demande(db, demande_id) if access else None
        autorise = access is not None and demande is not None and peut_consulter(access, demande)
    finally:
        db.close()
    if not autorise:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _relayer(websocket, canal_messages(demande_id))


@router.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket, token: str | None = None):
    db = database.SessionLocal()
    try:
        access = _access_websocket(websocket, db, token)
    finally:
        db.close()
    if access is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _relayer(websocket, canal_notifications(access.user_id))
