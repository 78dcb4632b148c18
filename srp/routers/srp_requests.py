import uuid
from decimal import Decimal
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from srp.config import PayoutPolicy, get_payout_policy
from srp.db.db import get_session
from srp.errors import SrpError
from srp.models.fleet import Fleet
from srp.models.user import User
from srp.services import claims as claim_service
from srp.services.payout import calculate
from srp.services.reporting import ClaimView, get_claim_view, list_claims
from srp.services.ship_catalog import ShipCatalog, get_ship_catalog
from srp.services.ship_classes import ShipClassTable, get_ship_class_table
from srp.services.status import ProcessType
from srp.utils.auth_helper import get_current_user_required, get_db_user, has_role, require_role
from srp.utils.form_validator import validate_create_claim_form
from srp.utils.http_errors import http_error


router = APIRouter()

RECENT_LIMIT = 5


class ClaimCreateRequest(BaseModel):
    killmail_url: str
    ship_type_id: int
    isk_amount: Decimal
    operation_type: str
    is_special_role: bool = False
    fleet_id: Optional[str] = None
    loss_description: Optional[str] = None
    victim_character_id: Optional[int] = None
    victim_character_name: Optional[str] = None


class ClaimUpdateRequest(BaseModel):
    loss_description: Optional[str] = Field(default=None, max_length=1000)


class ReviewRequest(BaseModel):
    action: Literal["approve", "deny"]
    reviewer_note: Optional[str] = Field(default=None, max_length=500)
    payout_amount: Optional[int] = Field(default=None, ge=0)
    # log_version the reviewer was looking at
    expected_version: Optional[int] = None


def serialize_claim(view: ClaimView, catalog: ShipCatalog, fleet: Optional[Fleet] = None) -> dict:
    data = view.claim.model_dump()
    data["status"] = view.status.value
    data["created_at"] = view.created_at
    data["process_logs"] = [log.model_dump() for log in view.process_logs]

    ship = catalog.get_ship(view.claim.ship_type_id)
    data["ship_data"] = ship.model_dump() if ship else None
    data["pilot_name"] = view.claim.victim_character_name or "Unknown pilot"
    data["fleet"] = fleet.model_dump() if fleet else None

    return data


def serialize_claims(session: Session, views: List[ClaimView], catalog: ShipCatalog) -> List[dict]:
    fleet_ids = {v.claim.fleet_id for v in views if v.claim.fleet_id}
    fleets = {}

    if fleet_ids:
        fleets = {
            f.id: f
            for f in session.exec(select(Fleet).where(Fleet.id.in_(list(fleet_ids)))).all()
        }

    return [serialize_claim(v, catalog, fleets.get(v.claim.fleet_id)) for v in views]


@router.get("/my/recent")
def get_my_recent_requests(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    user = get_db_user(session, current_user)
    views = list_claims(session, seat_user_id=user.seat_user_id)
    return serialize_claims(session, views[:RECENT_LIMIT], catalog)


@router.get("/my")
def get_my_requests(
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    user = get_db_user(session, current_user)
    views = list_claims(session, seat_user_id=user.seat_user_id)
    return serialize_claims(session, views, catalog)


@router.get("/all")
def get_all_requests(
    status: Literal["all", "pending", "approved", "denied", "paid"] = "all",
    session: Session = Depends(get_session),
    reviewer: User = Depends(require_role("fc")),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    """All requests for reviewers, optionally filtered by derived status."""
    views = list_claims(session, status=status)
    return serialize_claims(session, views, catalog)


@router.get("/{request_id}")
def get_request(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    user = get_db_user(session, current_user)

    view = get_claim_view(session, request_id)
    if not view:
        raise HTTPException(status_code=404, detail="Request not found")

    # Owners and reviewers only
    if view.claim.seat_user_id != user.seat_user_id and not has_role(user, "fc"):
        raise HTTPException(status_code=403, detail="Forbidden")

    fleet = session.get(Fleet, view.claim.fleet_id) if view.claim.fleet_id else None
    return serialize_claim(view, catalog, fleet)


@router.post("", status_code=201)
def create_request(
    payload: ClaimCreateRequest,
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    user = get_db_user(session, current_user)

    validated = validate_create_claim_form(
        killmail_url=payload.killmail_url,
        ship_type_id=payload.ship_type_id,
        isk_amount=payload.isk_amount,
        operation_type=payload.operation_type,
        is_special_role=payload.is_special_role,
        fleet_id=payload.fleet_id,
        loss_description=payload.loss_description,
        victim_character_id=payload.victim_character_id,
        victim_character_name=payload.victim_character_name,
        ship_group_name=catalog.get_group_name(payload.ship_type_id),
    )

    try:
        claim = claim_service.create_claim(session, user.seat_user_id, user.main_character_name, validated)
    except SrpError as e:
        raise http_error(e)

    fleet = session.get(Fleet, claim.fleet_id) if claim.fleet_id else None
    return serialize_claim(get_claim_view(session, claim.id), catalog, fleet)


@router.patch("/{request_id}")
def update_request(
    request_id: uuid.UUID,
    payload: ClaimUpdateRequest,
    session: Session = Depends(get_session),
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
):
    """Edit the loss description of your own pending request."""
    user = get_db_user(session, current_user)

    view = get_claim_view(session, request_id)
    if not view:
        raise HTTPException(status_code=404, detail="Request not found")

    if view.claim.seat_user_id != user.seat_user_id:
        raise HTTPException(status_code=403, detail="Forbidden")

    description = payload.loss_description.strip() if payload.loss_description else None

    try:
        claim_service.append_process_log(
            session,
            request_id,
            ProcessType.UPDATED.value,
            user.main_character_name,
            loss_description=description or None,
        )
    except SrpError as e:
        raise http_error(e)

    return serialize_claim(get_claim_view(session, request_id), catalog)


@router.patch("/{request_id}/review")
def review_request(
    request_id: uuid.UUID,
    payload: ReviewRequest,
    session: Session = Depends(get_session),
    reviewer: User = Depends(require_role("fc")),
    catalog: ShipCatalog = Depends(get_ship_catalog),
    table: ShipClassTable = Depends(get_ship_class_table),
    policy: PayoutPolicy = Depends(get_payout_policy),
):
    view = get_claim_view(session, request_id)
    if not view:
        raise HTTPException(status_code=404, detail="Request not found")

    payout_amount = payload.payout_amount

    try:
        if payload.action == "approve" and payout_amount is None:
            claim = view.claim
            estimate = calculate(
                claim.isk_amount,
                claim.operation_type,
                claim.is_special_role,
                claim.ship_group_name,
                table,
                policy,
            )
            # Whole ISK, never rounded up
            payout_amount = int(estimate.estimated_payout)

        process_type = ProcessType.APPROVE if payload.action == "approve" else ProcessType.DENY
        claim_service.append_process_log(
            session,
            request_id,
            process_type.value,
            reviewer.main_character_name,
            note=payload.reviewer_note,
            payout_amount=payout_amount if process_type == ProcessType.APPROVE else None,
            expected_version=payload.expected_version,
        )
    except SrpError as e:
        raise http_error(e)

    return serialize_claim(get_claim_view(session, request_id), catalog)
