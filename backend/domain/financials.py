"""Financial reconciliation rules for bookings.

Everything here is a pure function of its inputs. Payment status is decided
elsewhere; these totals are only what a payment decision is compared against.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from backend.domain.errors import FinancialInvariantError


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize a value to cents with half-up rounding."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FinancialPolicy:
    tax_rate: Decimal
    service_charge_rate: Decimal
    deposit_rate: Decimal


def validate_financial_policy(policy: FinancialPolicy) -> None:
    if not Decimal("0") <= policy.tax_rate <= Decimal("1"):
        raise ValueError("tax_rate must be between 0 and 1")
    if not Decimal("0") <= policy.service_charge_rate <= Decimal("1"):
        raise ValueError("service_charge_rate must be between 0 and 1")
    if not Decimal("0") < policy.deposit_rate <= Decimal("1"):
        raise ValueError("deposit_rate must be in (0, 1]")


@dataclass(frozen=True)
class FinancialBreakdown:
    subtotal: Decimal
    tax_amount: Decimal
    service_charge: Decimal
    additional_charges_total: Decimal
    discount: Decimal
    total_amount: Decimal

    def __post_init__(self) -> None:
        expected = (
            self.subtotal
            + self.tax_amount
            + self.service_charge
            + self.additional_charges_total
            - self.discount
        )
        if self.total_amount != expected:
            raise FinancialInvariantError(
                f"total_amount {self.total_amount} != computed {expected}"
            )
        if self.total_amount < ZERO:
            raise FinancialInvariantError(f"total_amount {self.total_amount} is negative")


def reconcile(
    *,
    room_price_per_night: Decimal,
    number_of_nights: int,
    tax_rate: Decimal,
    service_charge_rate: Decimal,
    additional_charges: Iterable[Decimal] = (),
    discount: Decimal = ZERO,
) -> FinancialBreakdown:
    """Compute the booking totals from the current inputs."""
    if number_of_nights < 1:
        raise FinancialInvariantError(f"number_of_nights must be >= 1, got {number_of_nights}")
    if room_price_per_night < ZERO:
        raise FinancialInvariantError("room_price_per_night must not be negative")
    if discount < ZERO:
        raise FinancialInvariantError("discount must not be negative")

    subtotal = to_money(room_price_per_night * number_of_nights)
    tax_amount = to_money(subtotal * tax_rate)
    service_charge = to_money(subtotal * service_charge_rate)
    additional_charges_total = to_money(sum((to_money(item) for item in additional_charges), ZERO))
    discount = to_money(discount)
    total_amount = subtotal + tax_amount + service_charge + additional_charges_total - discount
    return FinancialBreakdown(
        subtotal=subtotal,
        tax_amount=tax_amount,
        service_charge=service_charge,
        additional_charges_total=additional_charges_total,
        discount=discount,
        total_amount=total_amount,
    )


def deposit_amount_for(total_amount: Decimal, deposit_rate: Decimal) -> Decimal:
    return to_money(total_amount * deposit_rate)


def cancellation_fee_for(
    *,
    room_price_per_night: Decimal,
    total_amount: Decimal,
    check_in_at: datetime,
    cancelled_at: datetime,
    free_cancellation_hours: int,
) -> Decimal:
    """One night's room price, unless cancelled at least the free window ahead.

    The fee never exceeds the booking total, so a heavily discounted stay
    cannot cost more to cancel than to keep.
    """
    if check_in_at - cancelled_at >= timedelta(hours=free_cancellation_hours):
        return ZERO
    return min(to_money(room_price_per_night), to_money(total_amount))
