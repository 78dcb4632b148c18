"""
SRP payout calculator.

Computes the reimbursement estimate for a loss from its reported value, the
operation context it happened in and the ship group it belongs to. The
computation is pure: the policy constants and the ship-class table are passed
in, and all money is handled as Decimal so the same inputs always give the
same amount.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from srp.config import PayoutPolicy
from srp.errors import InvalidInputError
from srp.services.ship_classes import ShipClassTable

OPERATION_SOLO = "solo"
OPERATION_FLEET = "fleet"
OPERATION_TYPES = (OPERATION_SOLO, OPERATION_FLEET)


@dataclass(frozen=True)
class PayoutBreakdown:
    """How an estimate was reached."""

    base_value: Decimal
    operation_multiplier: Decimal
    effective_special_role: bool
    calculated_amount: Decimal
    final_amount: Decimal
    max_payout: Decimal
    is_special_ship_class: bool


@dataclass(frozen=True)
class PayoutEstimate:
    estimated_payout: Decimal
    breakdown: PayoutBreakdown


def _to_decimal(value: Union[int, str, Decimal]) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError("Base value must be a number, not a boolean")
    if isinstance(value, float):
        # Floats carry binary noise into the result
        raise InvalidInputError("Base value must be an integer or Decimal, not float")
    try:
        result = Decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidInputError(f"Base value is not a number: {value!r}")

    if not result.is_finite():
        raise InvalidInputError(f"Base value must be finite: {value!r}")
    return result


def calculate(
    base_value: Union[int, Decimal],
    operation_type: str,
    is_special_role: bool,
    ship_group_name: Optional[str],
    table: ShipClassTable,
    policy: PayoutPolicy = PayoutPolicy(),
) -> PayoutEstimate:
    """
    Estimate the payout for a single loss.

    Args:
        base_value: Total value of the loss from the kill record.
        operation_type: "solo" or "fleet".
        is_special_role: Fleet support role flag; ignored for solo losses.
        ship_group_name: Ship group used for tier ceiling and special-class lookup.
        table: Ship-class lookup table.
        policy: Multipliers and default ceiling.

    Returns:
        PayoutEstimate with the final amount and its breakdown.
    """
    if operation_type not in OPERATION_TYPES:
        raise InvalidInputError(f"Invalid operation type: {operation_type!r}")

    value = _to_decimal(base_value)
    if value < 0:
        raise InvalidInputError("Base value must not be negative")

    is_special_ship_class = table.is_special_class(ship_group_name)
    is_fleet = operation_type == OPERATION_FLEET
    effective_special_role = is_fleet and bool(is_special_role)

    if effective_special_role:
        multiplier = policy.full_rate
    elif is_fleet:
        multiplier = policy.fleet_rate
    elif is_special_ship_class:
        multiplier = policy.full_rate
    else:
        multiplier = policy.solo_rate

    calculated_amount = value * multiplier

    tier_ceiling = table.get_tier_ceiling(ship_group_name)
    if not is_fleet and tier_ceiling is not None:
        max_payout = tier_ceiling
    else:
        max_payout = policy.default_max_payout

    final_amount = min(calculated_amount, max_payout)

    return PayoutEstimate(
        estimated_payout=final_amount,
        breakdown=PayoutBreakdown(
            base_value=value,
            operation_multiplier=multiplier,
            effective_special_role=effective_special_role,
            calculated_amount=calculated_amount,
            final_amount=final_amount,
            max_payout=max_payout,
            is_special_ship_class=is_special_ship_class,
        ),
    )
