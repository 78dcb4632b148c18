from typing import Optional
import uuid
from sqlmodel import Field, SQLModel, UniqueConstraint
from datetime import datetime, timezone


class Claim(SQLModel, table=True):
    __tablename__ = "srp_requests"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Claimant
    seat_user_id: int = Field(index=True)
    claimant_name: str

    # Loss facts, fixed at creation
    killmail_id: int
    victim_character_id: Optional[int] = Field(default=None, index=True)
    victim_character_name: Optional[str] = None
    ship_type_id: int
    ship_group_name: Optional[str] = None
    isk_amount: int  # base value reported by the kill record
    operation_type: str = Field(default="fleet")  # values: "solo", "fleet"
    is_special_role: bool = Field(default=False)
    loss_description: Optional[str] = None
    fleet_id: Optional[uuid.UUID] = Field(default=None, foreign_key="fleets.id", index=True)

    # Review and payment, written together with a process log entry
    payout_amount: Optional[int] = None
    reviewer_name: Optional[str] = None
    reviewer_note: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    # Bumped on every log append; guards concurrent transitions
    log_version: int = Field(default=0)

    __table_args__ = (
        # One claim per real-world loss
        UniqueConstraint(
            "killmail_id",
            name="uq_srp_requests_killmail_id"
        ),
    )
