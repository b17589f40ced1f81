from typing import Literal

from pydantic import BaseModel, field_validator
from .validators import format_date
from .piece_jointe import PieceJointeSchema
from .validation import ValidationSchema
from .log_suivi import LogSuiviSchema


class DemandeSchema(BaseModel):
    id: int
    titre: str
    type: str
    description: str | None = None
    etudiant_id: int
    nom_complet: str | None = None
    license_level: str | None = None
    urgence: str | None = None
    delivery_method: str
    departement_id: int | None = None
    statut: str
    date_soumission: str
    date_mise_a_jour: str

    class Config:
        from_attributes = True

    @field_validator("date_soumission", "date_mise_a_jour", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)


class DemandeDetailSchema(DemandeSchema):
    pieces_jointes: list[PieceJointeSchema] = []
    validations: list[ValidationSchema] = []
    logs_suivi: list[LogSuiviSchema] = []
    actions: list[str] = []


# Données du formulaire de soumission (les fichiers arrivent à part)
class DemandeCreateSchema(BaseModel):
    type: str
    license_level: Literal["L1", "L2", "L3"]
    urgence: Literal["normal", "urgent"] = "normal"
    delivery_method: Literal["email", "in_person"] = "email"
    justification: str | None = None


class DemandePageSchema(BaseModel):
    total: int
    page: int
    taille: int
    demandes: list[DemandeSchema]


class ResultatTransitionSchema(BaseModel):
    demande: DemandeSchema
    avertissements: list[str] = []


class TypeDemandeSchema(BaseModel):
    id: str
    label: str
    description: str
    autorite: str
    requiert_paiement: bool
    requiert_justification: bool
    montant: str | None = None
