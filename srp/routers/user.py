from typing import Literal
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from srp.db.db import get_session
from srp.models.user import User
from srp.services.reporting import dashboard_stats
from srp.utils.auth_helper import get_current_user_required, get_db_user, require_role


router = APIRouter()


class RoleUpdateRequest(BaseModel):
    role: Literal["member", "fc", "admin"]


class DashboardStatsResponse(BaseModel):
    pending_count: int
    approved_today: int
    total_paid_out: int
    average_processing_hours: int


@router.get("/user/role")
def get_my_role(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
):
    user = get_db_user(session, current_user)
    return {"role": user.role}


@router.patch("/user/{seat_user_id}/role")
def update_user_role(
    seat_user_id: int,
    payload: RoleUpdateRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_role("admin")),
):
    user = session.exec(
        select(User).where(User.seat_user_id == seat_user_id)
    ).first()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.role = payload.role

    session.add(user)
    session.commit()
    session.refresh(user)

    return {"seat_user_id": user.seat_user_id, "role": user.role}


@router.get("/stats", response_model=DashboardStatsResponse)
def get_stats(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
):
    user = get_db_user(session, current_user)
    stats = dashboard_stats(session, user.seat_user_id)

    return DashboardStatsResponse(
        pending_count=stats.pending_count,
        approved_today=stats.approved_today,
        total_paid_out=stats.total_paid_out,
        average_processing_hours=stats.average_processing_hours,
    )
