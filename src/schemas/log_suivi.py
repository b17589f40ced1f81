from pydantic import BaseModel, field_validator
from .validators import format_date


class LogSuiviSchema(BaseModel):
    id: int
    demande_id: int | None = None
    etat: str
    user_id: int
    message: str | None = None
    date_action: str

    class Config:
        from_attributes = True

    @field_validator("date_action", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)
