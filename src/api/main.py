# ---------------- Imports principaux ----------------
import logging
import os

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from src.api import demandes, messages, notifications, traitement, utilisateurs, validation
from src.api.erreurs import raise_for_code
from src.database import Base, SessionLocal, engine, get_db
from src.models import models  # noqa: F401  (enregistre les tables)
from src.schemas.utilisateur import ConnexionSchema, InscriptionSchema, UtilisateurSchema
from src.security.auth import TOKEN_MAX_AGE, decode_token
from src.services import stockage
from src.services import utilisateurs as users_svc

logger = logging.getLogger("uvicorn.error")


# ---------------- Définition app FastAPI ----------------
app = FastAPI(title="GOPAC", description="Gestion des demandes administratives du Centre Informatique")
app.include_router(demandes.router)
app.include_router(traitement.router)
app.include_router(validation.router)
app.include_router(notifications.router)
app.include_router(messages.router)
app.include_router(utilisateurs.router)

# Fichiers déposés (pièces jointes, avatars, signatures)
app.mount("/fichiers", StaticFiles(directory=str(stockage.storage_dir()), check_dir=False), name="fichiers")


@app.on_event("startup")
def _on_startup():
    if os.getenv("GOPAC_SKIP_INIT") or os.getenv("PYTEST_CURRENT_TEST"):
        return
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ajoutes = users_svc.ensure_departements(db)
        if ajoutes:
            logger.info("%s département(s) créé(s)", ajoutes)
    finally:
        db.close()


# ---------------- Middleware auth token -> state ----------------
@app.middleware("http")
async def auth_token_middleware(request: Request, call_next):
    token = None
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
    token = token or request.cookies.get("auth_token")
    if token:
        data = decode_token(token)
        if data:
            request.state.user_ctx = {
                "user_id": data.get("uid"),
                "role": data.get("role"),
                "departement_id": data.get("did"),
            }
    return await call_next(request)


# ---------------- Middleware CORS ----------------
_origins = [o.strip() for o in os.getenv("GOPAC_CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------- Authentification ----------------
@app.post("/auth/inscription", response_model=UtilisateurSchema, status_code=201, tags=["Authentification"])
def inscription(payload: InscriptionSchema, db: Session = Depends(get_db)):
    res = users_svc.inscrire(db, payload)
    if isinstance(res, str):
        raise_for_code(res)
    return res


@app.post("/auth/connexion", tags=["Authentification"])
def connexion(payload: ConnexionSchema, db: Session = Depends(get_db)):
    res = users_svc.connecter(db, payload)
    if isinstance(res, str):
        raise_for_code(res)
    user, token = res
    response = JSONResponse(
        {
            "token": token,
            "utilisateur": UtilisateurSchema.model_validate(user).model_dump(),
        }
    )
    response.set_cookie("auth_token", token, httponly=True, max_age=TOKEN_MAX_AGE, path="/")
    return response


@app.post("/auth/deconnexion", tags=["Authentification"])
def deconnexion():
    resp = JSONResponse({"detail": "logged out"})
    resp.delete_cookie("auth_token", path="/")
    return resp


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}
