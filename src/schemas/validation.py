from pydantic import BaseModel, field_validator
from .validators import format_date


class ValidationSchema(BaseModel):
    id: int
    demande_id: int
    user_id: int
    role: str
    decision: str
    motif: str | None = None
    date_validation: str

    class Config:
        from_attributes = True

    @field_validator("date_validation", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)


class RejetSchema(BaseModel):
    motif: str | None = None
