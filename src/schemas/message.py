from pydantic import BaseModel, field_validator
from .validators import format_date


class MessageSchema(BaseModel):
    id: int
    demande_id: int
    user_id: int
    content: str
    is_admin: bool = False
    created_at: str
    auteur: str | None = None

    class Config:
        from_attributes = True

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)


class MessageCreateSchema(BaseModel):
    content: str
    # Notification à laquelle on répond (marquée lue après l'envoi)
    notification_id: int | None = None

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, v):
        v = v.strip() if isinstance(v, str) else v
        if not v:
            raise ValueError("Le message est vide")
        return v


class MessageEnvoyeSchema(BaseModel):
    message: MessageSchema
    avertissements: list[str] = []
