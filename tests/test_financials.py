"""Tests for booking financial reconciliation.

Covers the totals formula, half-up cent rounding, the cancellation window
boundary and payment status resolution.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from backend.domain.errors import FinancialInvariantError
from backend.domain.financials import (
    ZERO,
    FinancialBreakdown,
    FinancialPolicy,
    cancellation_fee_for,
    deposit_amount_for,
    reconcile,
    validate_financial_policy,
)
from backend.domain.lifecycle import resolve_payment_status
from backend.domain.models import PaymentStatus


TAX = Decimal("0.10")
SERVICE = Decimal("0.05")


def _reconcile(**overrides) -> FinancialBreakdown:
    inputs = {
        "room_price_per_night": Decimal("200.00"),
        "number_of_nights": 2,
        "tax_rate": TAX,
        "service_charge_rate": SERVICE,
    }
    inputs.update(overrides)
    return reconcile(**inputs)


def test_two_night_stay_totals() -> None:
    breakdown = _reconcile()
    assert breakdown.subtotal == Decimal("400.00")
    assert breakdown.tax_amount == Decimal("40.00")
    assert breakdown.service_charge == Decimal("20.00")
    assert breakdown.additional_charges_total == ZERO
    assert breakdown.discount == ZERO
    assert breakdown.total_amount == Decimal("460.00")


def test_zero_rates_give_bare_subtotal_plus_charges() -> None:
    breakdown = _reconcile(
        tax_rate=Decimal("0"),
        service_charge_rate=Decimal("0"),
        additional_charges=[Decimal("15.00")],
    )
    assert breakdown.additional_charges_total == Decimal("15.00")
    assert breakdown.total_amount == Decimal("415.00")


def test_reconcile_is_pure() -> None:
    first = _reconcile(additional_charges=[Decimal("12.50"), Decimal("3.25")], discount=Decimal("20"))
    second = _reconcile(additional_charges=[Decimal("12.50"), Decimal("3.25")], discount=Decimal("20"))
    assert first == second


def test_amounts_round_half_up_to_cents() -> None:
    breakdown = _reconcile(room_price_per_night=Decimal("33.33"), number_of_nights=1)
    # 3.333 -> 3.33 and 1.6665 -> 1.67
    assert breakdown.tax_amount == Decimal("3.33")
    assert breakdown.service_charge == Decimal("1.67")
    assert breakdown.total_amount == Decimal("38.33")


def test_discount_and_charges_satisfy_formula() -> None:
    breakdown = _reconcile(additional_charges=[Decimal("15")], discount=Decimal("50"))
    assert breakdown.total_amount == (
        breakdown.subtotal
        + breakdown.tax_amount
        + breakdown.service_charge
        + breakdown.additional_charges_total
        - breakdown.discount
    )
    assert breakdown.total_amount == Decimal("425.00")


def test_zero_nights_is_an_invariant_violation() -> None:
    with pytest.raises(FinancialInvariantError):
        _reconcile(number_of_nights=0)


def test_negative_discount_is_an_invariant_violation() -> None:
    with pytest.raises(FinancialInvariantError):
        _reconcile(discount=Decimal("-1"))


def test_breakdown_rejects_inconsistent_total() -> None:
    with pytest.raises(FinancialInvariantError):
        FinancialBreakdown(
            subtotal=Decimal("400.00"),
            tax_amount=Decimal("40.00"),
            service_charge=Decimal("20.00"),
            additional_charges_total=ZERO,
            discount=ZERO,
            total_amount=Decimal("455.00"),
        )


def test_deposit_is_share_of_total() -> None:
    assert deposit_amount_for(Decimal("460.00"), Decimal("0.30")) == Decimal("138.00")
    assert deposit_amount_for(Decimal("38.33"), Decimal("0.30")) == Decimal("11.50")


# --- cancellation window ---

CHECK_IN_AT = datetime(2024, 6, 1, 14, 0)


def _fee(cancelled_at: datetime, total_amount: Decimal = Decimal("460.00")) -> Decimal:
    return cancellation_fee_for(
        room_price_per_night=Decimal("200.00"),
        total_amount=total_amount,
        check_in_at=CHECK_IN_AT,
        cancelled_at=cancelled_at,
        free_cancellation_hours=48,
    )


def test_cancellation_exactly_48_hours_ahead_is_free() -> None:
    assert _fee(CHECK_IN_AT - timedelta(hours=48)) == ZERO


def test_cancellation_47h59m_ahead_costs_one_night() -> None:
    assert _fee(CHECK_IN_AT - timedelta(hours=47, minutes=59)) == Decimal("200.00")


def test_cancellation_after_check_in_time_costs_one_night() -> None:
    assert _fee(CHECK_IN_AT + timedelta(hours=3)) == Decimal("200.00")


def test_cancellation_fee_is_capped_at_booking_total() -> None:
    late = CHECK_IN_AT - timedelta(hours=10)
    assert _fee(late, total_amount=Decimal("30.00")) == Decimal("30.00")
    assert _fee(CHECK_IN_AT - timedelta(hours=48), total_amount=Decimal("30.00")) == ZERO


# --- policy validation ---

@pytest.mark.parametrize(
    "policy",
    [
        FinancialPolicy(tax_rate=Decimal("-0.01"), service_charge_rate=SERVICE, deposit_rate=Decimal("0.3")),
        FinancialPolicy(tax_rate=TAX, service_charge_rate=Decimal("1.5"), deposit_rate=Decimal("0.3")),
        FinancialPolicy(tax_rate=TAX, service_charge_rate=SERVICE, deposit_rate=Decimal("0")),
    ],
)
def test_invalid_policy_raises(policy: FinancialPolicy) -> None:
    with pytest.raises(ValueError):
        validate_financial_policy(policy)


def test_default_policy_passes() -> None:
    validate_financial_policy(
        FinancialPolicy(tax_rate=TAX, service_charge_rate=SERVICE, deposit_rate=Decimal("0.30"))
    )


# --- payment status ---

@pytest.mark.parametrize(
    ("paid", "due", "expected"),
    [
        ("0.00", "460.00", PaymentStatus.UNPAID),
        ("138.00", "460.00", PaymentStatus.PARTIALLY_PAID),
        ("460.00", "460.00", PaymentStatus.PAID),
        ("500.00", "460.00", PaymentStatus.PAID),
        ("100.00", "0.00", PaymentStatus.PAID),
    ],
)
def test_resolve_payment_status(paid: str, due: str, expected: PaymentStatus) -> None:
    assert resolve_payment_status(Decimal(paid), Decimal(due)) is expected
