from pydantic import BaseModel, field_validator
from .validators import format_date


class NotificationSchema(BaseModel):
    id: int
    user_id: int
    message: str
    demande_id: int | None = None
    lue: bool = False
    created_at: str

    class Config:
        from_attributes = True

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_date(cls, v):
        return format_date(v)
