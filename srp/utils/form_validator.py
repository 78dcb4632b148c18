import re
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal, Optional
from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError, model_validator

KILLMAIL_URL_PATTERN = re.compile(r"^https?://(?:www\.)?zkillboard\.com/kill/(\d+)/?$")


def parse_killmail_id(url: str) -> int:
    match = KILLMAIL_URL_PATTERN.match(url.strip())
    if not match:
        raise ValueError("URL must be a zKillboard kill link, e.g. https://zkillboard.com/kill/123456/")
    return int(match.group(1))


class ValidatedCreateClaim(BaseModel):
    killmail_id: int = Field(ge=1)
    ship_type_id: int = Field(ge=1)
    ship_group_name: Optional[str] = None
    isk_amount: int = Field(ge=1)
    operation_type: Literal["solo", "fleet"]
    is_special_role: bool = False
    fleet_id: Optional[uuid.UUID] = None
    loss_description: Optional[str] = Field(default=None, max_length=1000)
    victim_character_id: Optional[int] = None
    victim_character_name: Optional[str] = None

    @model_validator(mode="after")
    def fleet_claims_need_fleet(self):
        if self.operation_type == "fleet" and self.fleet_id is None:
            raise ValueError("Fleet losses must reference a fleet id")
        return self


class ValidatedCalculateInput(BaseModel):
    ship_type_id: int = Field(ge=1)
    isk_value: int = Field(ge=0)
    operation_type: Literal["solo", "fleet"]
    is_special_role: bool = False
    group_name: Optional[str] = None


def to_whole_isk(value: Decimal) -> int:
    """Round an ISK amount to whole ISK, halves away from zero."""
    if not value.is_finite():
        raise HTTPException(status_code=400, detail="ISK amount must be a finite number")
    try:
        return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise HTTPException(status_code=400, detail="ISK amount is too large")


def _raise_bad_request(e: ValidationError):
    raise HTTPException(
        status_code=400,
        detail=e.errors(include_url=False, include_context=False),
    )


def validate_create_claim_form(
    killmail_url: str,
    ship_type_id: int,
    isk_amount: Decimal,
    operation_type: str,
    is_special_role: bool = False,
    fleet_id: Optional[str] = None,
    loss_description: Optional[str] = None,
    victim_character_id: Optional[int] = None,
    victim_character_name: Optional[str] = None,
    ship_group_name: Optional[str] = None,
) -> ValidatedCreateClaim:
    try:
        killmail_id = parse_killmail_id(killmail_url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if loss_description is not None:
        loss_description = loss_description.strip() or None

    try:
        return ValidatedCreateClaim(
            killmail_id=killmail_id,
            ship_type_id=ship_type_id,
            ship_group_name=ship_group_name,
            # Kill records report fractional ISK; claims are whole ISK
            isk_amount=to_whole_isk(isk_amount),
            operation_type=operation_type,
            is_special_role=is_special_role,
            fleet_id=fleet_id or None,
            loss_description=loss_description,
            victim_character_id=victim_character_id,
            victim_character_name=victim_character_name,
        )
    except ValidationError as e:
        _raise_bad_request(e)


def validate_calculate_input(
    ship_type_id: int,
    isk_value: Decimal,
    operation_type: str,
    is_special_role: bool = False,
    group_name: Optional[str] = None,
) -> ValidatedCalculateInput:
    try:
        return ValidatedCalculateInput(
            ship_type_id=ship_type_id,
            isk_value=to_whole_isk(isk_value),
            operation_type=operation_type,
            is_special_role=is_special_role,
            group_name=group_name,
        )
    except ValidationError as e:
        _raise_bad_request(e)
