import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Pas de MySQL ni d'initialisation au démarrage pendant les tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["GOPAC_SKIP_INIT"] = "1"

from src import database
from src.api.main import app
from src.database import Base
from src.models import models  # noqa: F401
from src.models.utilisateur import Utilisateur
from src.security.auth import encode_token, hash_password
from src.services import mailer
from src.services.mailer import EnvoiResultat
from src.services.utilisateurs import ensure_departements, get_departement_id

PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture(scope="session")
def mot_de_passe_hash():
    # bcrypt est lent : un seul hash pour toute la session
    return hash_password("secret123")


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    ensure_departements(session)
    yield session
    session.close()


@pytest.fixture
def client(session_factory, monkeypatch):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[database.get_db] = _get_db
    # les WebSockets ouvrent leur propre session
    monkeypatch.setattr(database, "SessionLocal", session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def stockage_tmp(tmp_path, monkeypatch):
    dossier = tmp_path / "uploads"
    monkeypatch.setenv("GOPAC_STORAGE_DIR", str(dossier))
    monkeypatch.setenv("GOPAC_PUBLIC_URL", "http://test/fichiers")
    return dossier


@pytest.fixture(autouse=True)
def courriels(monkeypatch):
    """Capture les e-mails au lieu de les envoyer."""
    envoyes = []

    def fake_send_email(to_email, subject, text, html=None):
        envoyes.append({"to": to_email, "subject": subject, "text": text})
        return EnvoiResultat(success=True)

    monkeypatch.setattr(mailer, "send_email", fake_send_email)
    return envoyes


@pytest.fixture
def users(db, mot_de_passe_hash):
    dl = get_departement_id(db, "DL")
    ntic = get_departement_id(db, "NTIC")
    comptes = {
        "etudiant": ("Awa Camara", "awa@etu.gopac.org", "etudiant", dl),
        "etudiant_ntic": ("Ibrahima Sow", "ibrahima@etu.gopac.org", "etudiant", ntic),
        "chef_dl": ("Mariama Bah", "chef.dl@gopac.org", "chef_dept", dl),
        "chef_ntic": ("Sekou Diallo", "chef.ntic@gopac.org", "chef_dept", ntic),
        "directeur_dl": ("Fatoumata Barry", "dir.dl@gopac.org", "directeur_prog", dl),
        "dae": ("Alpha Keita", "dae@gopac.org", "dae", None),
        "secretaire": ("Kadiatou Conde", "sg@gopac.org", "secretaire_dg", None),
        "dg": ("Mamadou Youla", "dg@gopac.org", "dg", None),
        "dg2": ("Aissatou Toure", "dg.adjoint@gopac.org", "dg", None),
    }
    out = {}
    for key, (nom, email, role, dep) in comptes.items():
        u = Utilisateur(nom=nom, email=email, password_hash=mot_de_passe_hash, role=role, departement_id=dep)
        db.add(u)
        out[key] = u
    db.commit()
    for u in out.values():
        db.refresh(u)
    return out


def headers(user) -> dict:
    return {"Authorization": f"Bearer {encode_token(user.id, user.role, user.departement_id)}"}


@pytest.fixture
def soumettre(client):
    """Soumet une demande via l'API et retourne la réponse."""
    def _soumettre(user, type_demande="releve", fichiers=None, **form):
        data = {"type": type_demande, "license_level": "L2", "urgence": "normal", "delivery_method": "email"}
        data.update(form)
        files = [("fichiers", f) for f in (fichiers or [])]
        return client.post("/demandes", data=data, files=files or None, headers=headers(user))

    return _soumettre


@pytest.fixture
def demande_en_traitement(client, users, soumettre):
    r = soumettre(users["etudiant"])
    assert r.status_code == 201, r.text
    demande_id = r.json()["demande"]["id"]
    r = client.post(
        f"/traitement/demandes/{demande_id}",
        files={"fichier": ("releve-traite.pdf", PDF, "application/pdf")},
        headers=headers(users["chef_dl"]),
    )
    assert r.status_code == 200, r.text
    return demande_id
