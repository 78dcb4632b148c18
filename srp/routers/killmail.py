from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from srp.config import PayoutPolicy, get_payout_policy
from srp.errors import SrpError
from srp.services.payout import calculate
from srp.services.ship_catalog import ShipCatalog, get_ship_catalog
from srp.services.ship_classes import ShipClassTable, get_ship_class_table
from srp.utils.auth_helper import get_current_user_required
from srp.utils.form_validator import validate_calculate_input
from srp.utils.http_errors import http_error


router = APIRouter()


class CalculateRequest(BaseModel):
    ship_type_id: int
    isk_value: Decimal
    operation_type: str
    is_special_role: bool = False
    group_name: Optional[str] = None


class BreakdownResponse(BaseModel):
    base_value: Decimal
    operation_multiplier: Decimal
    is_special_role: bool
    calculated_amount: Decimal
    final_amount: Decimal
    max_payout: Decimal
    is_special_ship_class: bool
    tier_name: Optional[str]


class CalculateResponse(BaseModel):
    estimated_payout: Decimal
    breakdown: BreakdownResponse


@router.post("/calculate", response_model=CalculateResponse)
def calculate_payout(
    payload: CalculateRequest,
    current_user=Depends(get_current_user_required),
    catalog: ShipCatalog = Depends(get_ship_catalog),
    table: ShipClassTable = Depends(get_ship_class_table),
    policy: PayoutPolicy = Depends(get_payout_policy),
):
    """Estimate the payout for a loss before it is submitted."""
    validated = validate_calculate_input(
        ship_type_id=payload.ship_type_id,
        isk_value=payload.isk_value,
        operation_type=payload.operation_type,
        is_special_role=payload.is_special_role,
        group_name=payload.group_name,
    )

    group_name = validated.group_name or catalog.get_group_name(validated.ship_type_id)
    if not validated.group_name and group_name is None and catalog.is_loaded():
        raise HTTPException(status_code=404, detail="Ship not found")

    try:
        estimate = calculate(
            validated.isk_value,
            validated.operation_type,
            validated.is_special_role,
            group_name,
            table,
            policy,
        )
    except SrpError as e:
        raise http_error(e)

    breakdown = estimate.breakdown
    return CalculateResponse(
        estimated_payout=estimate.estimated_payout,
        breakdown=BreakdownResponse(
            base_value=breakdown.base_value,
            operation_multiplier=breakdown.operation_multiplier,
            is_special_role=breakdown.effective_special_role,
            calculated_amount=breakdown.calculated_amount,
            final_amount=breakdown.final_amount,
            max_payout=breakdown.max_payout,
            is_special_ship_class=breakdown.is_special_ship_class,
            tier_name=table.get_tier_name(group_name),
        ),
    )
