#!/usr/bin/env python3
"""
Déclare l'adresse expéditrice auprès du fournisseur d'e-mails (API HTTP).

    EMAIL_PROVIDER_API_KEY=... python3 scripts/add_sender.py admin@exemple.org "Centre Informatique"

L'URL de l'API est lue dans EMAIL_PROVIDER_URL (défaut : https://api.resend.com/senders).
"""
import argparse
import os
import sys

import requests


def add_sender(email: str, name: str) -> dict:
    api_key = os.getenv("EMAIL_PROVIDER_API_KEY")
    if not api_key:
        raise SystemExit("EMAIL_PROVIDER_API_KEY absente.")
    url = os.getenv("EMAIL_PROVIDER_URL", "https://api.resend.com/senders")
    r = requests.post(
        url,
        json={"email": email, "name": name},
        headers={"Authorization": f"Bearer {api_key}"},
        timeout=15,
    )
    r.raise_for_status()
    return r.json()


def main():
    parser = argparse.ArgumentParser(description="Ajouter un expéditeur chez le fournisseur d'e-mails")
    parser.add_argument("email")
    parser.add_argument("name", help="Nom affiché dans les e-mails")
    args = parser.parse_args()
    try:
        data = add_sender(args.email, args.name)
    except requests.RequestException as exc:
        print(f"Erreur lors de l'ajout de l'expéditeur : {exc}", file=sys.stderr)
        sys.exit(1)
    print("Expéditeur ajouté avec succès :", data)


if __name__ == "__main__":
    main()
