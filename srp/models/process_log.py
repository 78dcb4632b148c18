from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class ProcessLogEntry(SQLModel, table=True):
    __tablename__ = "srp_process_log"

    # Autoincrement id doubles as insertion order for timestamp ties
    id: Optional[int] = Field(default=None, primary_key=True)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    srp_request_id: uuid.UUID = Field(foreign_key="srp_requests.id", index=True, ondelete="CASCADE")

    process_type: str = Field(index=True)  # values: "created", "approve", "deny", "pay", "updated"
    by_main_char: str
    note: Optional[str] = None
