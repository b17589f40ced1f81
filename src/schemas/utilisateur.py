from typing import Literal

from pydantic import BaseModel, field_validator, model_validator
from .validators import email_valide, format_date

Role = Literal["etudiant", "chef_dept", "directeur_prog", "dae", "secretaire_dg", "dg"]

ROLES_AVEC_DEPARTEMENT = ("etudiant", "chef_dept", "directeur_prog")
DEPARTEMENTS = ("NTIC", "DL")


def _verifier_departement(role: str, department: str | None) -> None:
    if department and department not in DEPARTEMENTS:
        raise ValueError("Département invalide")
    if role in ROLES_AVEC_DEPARTEMENT and not department:
        raise ValueError("Le département est requis pour ce rôle")
    if role not in ROLES_AVEC_DEPARTEMENT and department:
        raise ValueError("Le département n'est pas requis pour ce rôle")


# Schéma pour la lecture (DB → API → JSON)
class UtilisateurSchema(BaseModel):
    id: int
    nom: str
    email: str
    role: str
    departement_id: int | None = None
    avatar_url: str | None = None
    created_at: str | None = None

    class Config:
        from_attributes = True

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)


class InscriptionSchema(BaseModel):
    email: str
    password: str
    name: str
    role: Role
    department: str | None = None

    @field_validator("email", "password", "name", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = v.lower()
        if not email_valide(v):
            raise ValueError("Email invalide")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        if len(v) < 6:
            raise ValueError("Le mot de passe doit contenir au moins 6 caractères")
        return v

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        if not v:
            raise ValueError("Le nom est requis")
        return v

    @model_validator(mode="after")
    def check_department(self):
        _verifier_departement(self.role, self.department)
        return self


class ConnexionSchema(BaseModel):
    email: str
    password: str
    role: Role
    department: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_department(self):
        _verifier_departement(self.role, self.department)
        return self


class ProfilUpdateSchema(BaseModel):
    nom: str

    @field_validator("nom", mode="before")
    @classmethod
    def check_nom(cls, v):
        v = v.strip() if isinstance(v, str) else v
        if not v:
            raise ValueError("Le nom est requis")
        return v
