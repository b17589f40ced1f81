#!/usr/bin/env python3
"""
Exporte les demandes (avec le département et le nombre de pièces jointes) en CSV.
À exécuter depuis la racine du projet : `python3 scripts/export_demandes.py demandes.csv [--statut validee]`.
"""
from pathlib import Path
import argparse
import sys

import pandas as pd
from sqlalchemy import func

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.database import SessionLocal
from src.models.demande import Demande
from src.models.departement import Departement
from src.models.piece_jointe import PieceJointe


def load_demandes(db, statut: str | None = None) -> pd.DataFrame:
    nb_pieces = (
        db.query(PieceJointe.demande_id, func.count(PieceJointe.id).label("nb_pieces"))
        .group_by(PieceJointe.demande_id)
        .subquery()
    )
    q = (
        db.query(
            Demande.id,
            Demande.titre,
            Demande.type,
            Demande.nom_complet,
            Demande.license_level,
            Demande.urgence,
            Demande.delivery_method,
            Departement.nom.label("departement"),
            Demande.statut,
            Demande.date_soumission,
            Demande.date_mise_a_jour,
            func.coalesce(nb_pieces.c.nb_pieces, 0).label("nb_pieces"),
        )
        .outerjoin(Departement, Departement.id == Demande.departement_id)
        .outerjoin(nb_pieces, nb_pieces.c.demande_id == Demande.id)
    )
    if statut:
        q = q.filter(Demande.statut == statut)
    return pd.read_sql(q.statement, db.bind)


def main():
    parser = argparse.ArgumentParser(description="Export CSV des demandes")
    parser.add_argument("sortie", help="Fichier CSV à écrire")
    parser.add_argument("--statut", default=None)
    args = parser.parse_args()
    db = SessionLocal()
    try:
        df = load_demandes(db, args.statut)
    finally:
        db.close()
    df.to_csv(args.sortie, index=False, sep=";")
    print(f"{len(df)} demande(s) exportée(s) vers {args.sortie}")


if __name__ == "__main__":
    main()
