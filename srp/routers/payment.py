import uuid
from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from srp.db.db import get_session
from srp.errors import SrpError
from srp.models.user import User
from srp.services.claims import mark_paid
from srp.services.reporting import payment_summary
from srp.utils.auth_helper import require_role
from srp.utils.http_errors import http_error


router = APIRouter()


class PaymentSummaryItem(BaseModel):
    seat_user_id: int
    claimant_name: str
    total_payout: int
    request_count: int
    request_ids: List[str]


class MarkPaidRequest(BaseModel):
    request_ids: List[uuid.UUID] = Field(min_length=1)


class MarkPaidResponse(BaseModel):
    success: bool
    marked_count: int
    skipped_count: int


@router.get("/summary", response_model=List[PaymentSummaryItem])
def get_payment_summary(
    session: Session = Depends(get_session),
    admin: User = Depends(require_role("admin")),
):
    """Approved, unpaid requests grouped by claimant."""
    return [
        PaymentSummaryItem(
            seat_user_id=group.seat_user_id,
            claimant_name=group.claimant_name,
            total_payout=group.total_payout,
            request_count=group.request_count,
            request_ids=group.request_ids,
        )
        for group in payment_summary(session)
    ]


@router.post("/mark-paid", response_model=MarkPaidResponse)
def mark_requests_paid(
    payload: MarkPaidRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_role("admin")),
):
    try:
        marked, skipped = mark_paid(session, payload.request_ids, admin.main_character_name)
    except SrpError as e:
        raise http_error(e)

    return MarkPaidResponse(success=True, marked_count=marked, skipped_count=skipped)
