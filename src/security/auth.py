import os
from typing import Optional

import bcrypt
from itsdangerous import URLSafeTimedSerializer, BadSignature, BadTimeSignature

# Durée de validité d'une session (8 heures)
TOKEN_MAX_AGE = 60 * 60 * 8


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("SECRET_KEY") or "dev-secret-key-change-me"
    return URLSafeTimedSerializer(secret_key=secret, salt="auth-token")


def encode_token(user_id: int, role: str, departement_id: Optional[int]) -> str:
    payload = {"uid": user_id, "role": role, "did": departement_id}
    return _serializer().dumps(payload)


def decode_token(token: str, max_age: int = TOKEN_MAX_AGE) -> Optional[dict]:
    try:
        return _serializer().loads(token, max_age=max_age)
    except (BadSignature, BadTimeSignature):
        return None
