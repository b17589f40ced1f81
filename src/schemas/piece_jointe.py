from pydantic import BaseModel, field_validator
from .validators import format_date


class PieceJointeSchema(BaseModel):
    id: int
    demande_id: int
    nom_fichier: str
    url: str
    type: str
    created_at: str | None = None

    class Config:
        from_attributes = True

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)
