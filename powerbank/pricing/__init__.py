"""
The pricing module determines how much a rental costs a user, taking
into account their membership. Non-members pay a refundable deposit up
front, while members rent deposit-free and get a discount on the
metered cost when they return the device.

All functions here are pure and work on :class:`~decimal.Decimal` amounts.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple, Union

from powerbank.models.user import Membership

Amount = Union[Decimal, int, float, str]

COMMON_DEPOSIT = Decimal("99.00")
SVIP_RATE = Decimal("0.5")
VIP_RATE = Decimal("0.8")

MINIMUM_HOURS = 1

MEMBERSHIP_PLANS: Dict[Tuple[Membership, int], Decimal] = {
    (Membership.VIP, 1): Decimal("25"),
    (Membership.VIP, 12): Decimal("150"),
    (Membership.SVIP, 1): Decimal("30"),
    (Membership.SVIP, 12): Decimal("180"),
}
"""Maps a membership and a number of months to the price of the upgrade."""

CENT = Decimal("0.01")


def as_decimal(value: Amount) -> Decimal:
    """Converts an amount to a decimal without picking up float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_money(value: Amount) -> Decimal:
    """Rounds an amount to whole cents."""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def deposit(membership: Membership) -> Decimal:
    """
    Gets the deposit a user must pay to start a rental.

    :raises ValueError: If the membership does not rent devices.
    """
    if membership is Membership.COMMON:
        return COMMON_DEPOSIT
    elif membership is Membership.VIP or membership is Membership.SVIP:
        return Decimal("0")
    else:
        raise ValueError(f"Membership {membership} does not have a deposit.")


def actual_cost(total_cost: Amount, membership: Membership) -> Decimal:
    """Applies the membership discount to the metered cost of a rental."""
    total_cost = as_decimal(total_cost)
    if membership is Membership.SVIP:
        return total_cost * SVIP_RATE
    elif membership is Membership.VIP:
        return total_cost * VIP_RATE
    else:
        return total_cost


def return_balance(balance: Amount, deposit_amount: Amount, cost: Amount) -> Decimal:
    """The balance of a user after their deposit is refunded and the rental charged."""
    return as_decimal(balance) + as_decimal(deposit_amount) - as_decimal(cost)


def sufficient_funds(balance: Amount, required: Amount) -> bool:
    return as_decimal(balance) >= as_decimal(required)


def rental_hours(start_time: datetime, end_time: datetime) -> int:
    """
    The number of whole hours between two times, charging at least one.

    Naive times are taken to be in UTC.
    """
    start_time, end_time = (t.replace(tzinfo=timezone.utc) if t.tzinfo is None else t for t in (start_time, end_time))
    hours = int((end_time - start_time).total_seconds() // 3600)
    return max(MINIMUM_HOURS, hours)


def metered_cost(hours: int, price_per_hour: Amount) -> Decimal:
    """The undiscounted cost of renting a device for a number of hours."""
    return hours * as_decimal(price_per_hour)


def plan_price(membership: Membership, months: int) -> Decimal:
    """
    Gets the price of upgrading to the given membership for some months.

    :raises ValueError: If there is no such plan.
    """
    try:
        return MEMBERSHIP_PLANS[(membership, months)]
    except KeyError:
        raise ValueError(f"There is no {months} month plan for {membership.value}.")
