import uuid
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import AwareDatetime, BaseModel, Field
from sqlmodel import Session, select

from srp.db.db import get_session
from srp.models.fleet import Fleet
from srp.models.user import User
from srp.utils.auth_helper import get_current_user_required, has_role, require_role


router = APIRouter()

# Fleets older than this drop out of the claim form's picker
ACTIVE_FLEET_WINDOW = timedelta(days=7)


class FleetCreateRequest(BaseModel):
    operation_name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    scheduled_at: AwareDatetime
    location: Optional[str] = None


class FleetStatusRequest(BaseModel):
    status: Literal["active", "completed", "cancelled"]


@router.post("", status_code=201)
def create_fleet(
    payload: FleetCreateRequest,
    session: Session = Depends(get_session),
    fc: User = Depends(require_role("fc")),
):
    fleet = Fleet(
        operation_name=payload.operation_name.strip(),
        description=payload.description,
        scheduled_at=payload.scheduled_at.astimezone(timezone.utc),
        location=payload.location,
        created_by_seat_user_id=fc.seat_user_id,
        fc_character_name=fc.main_character_name,
    )

    session.add(fleet)
    session.commit()
    session.refresh(fleet)

    return fleet


@router.get("")
def get_fleets(
    session: Session = Depends(get_session),
    reviewer: User = Depends(require_role("fc")),
):
    return session.exec(select(Fleet).order_by(Fleet.scheduled_at.desc())).all()


@router.get("/my/list")
def get_my_fleets(
    session: Session = Depends(get_session),
    fc: User = Depends(require_role("fc")),
):
    return session.exec(
        select(Fleet)
        .where(Fleet.created_by_seat_user_id == fc.seat_user_id)
        .order_by(Fleet.scheduled_at.desc())
    ).all()


@router.get("/active")
def get_active_fleets(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
):
    cutoff = datetime.now(timezone.utc) - ACTIVE_FLEET_WINDOW

    return session.exec(
        select(Fleet)
        .where(Fleet.status == "active")
        .where(Fleet.scheduled_at >= cutoff)
        .order_by(Fleet.scheduled_at.desc())
    ).all()


@router.get("/{fleet_id}")
def get_fleet(
    fleet_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
):
    fleet = session.get(Fleet, fleet_id)
    if not fleet:
        raise HTTPException(status_code=404, detail="Fleet not found")
    return fleet


@router.patch("/{fleet_id}/status")
def update_fleet_status(
    fleet_id: uuid.UUID,
    payload: FleetStatusRequest,
    session: Session = Depends(get_session),
    fc: User = Depends(require_role("fc")),
):
    fleet = session.get(Fleet, fleet_id)
    if not fleet:
        raise HTTPException(status_code=404, detail="Fleet not found")

    # Only the commanding FC or an admin
    if fleet.created_by_seat_user_id != fc.seat_user_id and not has_role(fc, "admin"):
        raise HTTPException(status_code=403, detail="Not authorized to update this fleet")

    fleet.status = payload.status
    fleet.updated_at = datetime.now(timezone.utc)

    session.add(fleet)
    session.commit()
    session.refresh(fleet)

    return fleet
