from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Fleet(SQLModel, table=True):
    __tablename__ = "fleets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # FC info
    created_by_seat_user_id: int = Field(index=True)
    fc_character_name: str

    # Operation fields
    operation_name: str
    description: Optional[str] = None
    scheduled_at: datetime = Field(index=True)
    location: Optional[str] = None

    status: str = Field(default="active", index=True)  # values: "active", "completed", "cancelled"
