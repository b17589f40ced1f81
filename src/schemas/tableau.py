from pydantic import BaseModel

from .demande import DemandeSchema
from .notification import NotificationSchema


class StatsSchema(BaseModel):
    en_attente: int = 0
    en_traitement: int = 0
    validee: int = 0
    rejetee: int = 0


class TableauSchema(BaseModel):
    stats: StatsSchema
    recentes: list[DemandeSchema] = []
    notifications: list[NotificationSchema] = []
    avertissements: list[str] = []


def construire_tableau(data: dict) -> TableauSchema:
    return TableauSchema(
        stats=StatsSchema(**data["stats"]),
        recentes=[DemandeSchema.model_validate(d) for d in data["recentes"]],
        notifications=[NotificationSchema.model_validate(n) for n in data["notifications"]],
        avertissements=data.get("avertissements", []),
    )
