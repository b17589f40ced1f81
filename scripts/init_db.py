#!/usr/bin/env python3
"""
Crée les tables et les départements de référence (NTIC, DL).
À exécuter depuis la racine du projet : `python3 scripts/init_db.py`.
"""
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.database import Base, SessionLocal, engine
from src.models import models  # noqa: F401
from src.services.utilisateurs import ensure_departements


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ajoutes = ensure_departements(db)
    finally:
        db.close()
    print(f"Tables prêtes ({len(Base.metadata.tables)}), {ajoutes} département(s) ajouté(s).")


if __name__ == "__main__":
    main()
