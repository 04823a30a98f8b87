"""
Tests for the ledger aggregator.

Every balance in the system is derived here, so these pin down
the arithmetic: signs, empty input, filtering, rounding, and
independence from input order.
"""

from decimal import Decimal
from types import SimpleNamespace

from finance_console.models.enums import EntryType
from finance_console.services.ledger_aggregator import (
    Movement,
    compute_balance,
    credits,
    debits,
    to_money,
    total,
)


def credit(amount, **fields):
    return Movement(Decimal(amount), EntryType.CREDIT, SimpleNamespace(**fields))


def debit(amount, **fields):
    return Movement(Decimal(amount), EntryType.DEBIT, SimpleNamespace(**fields))


class TestComputeBalance:

    def test_empty_input_is_zero(self):
        assert compute_balance([]) == Decimal("0.00")

    def test_credits_minus_debits(self):
        movements = [credit("500.00"), debit("120.25"), credit("20.00")]
        assert compute_balance(movements) == Decimal("399.75")

    def test_balance_can_go_negative(self):
        assert compute_balance([debit("10.00")]) == Decimal("-10.00")

    def test_order_does_not_matter(self):
        movements = [credit("900.00"), debit("300.00"), debit("0.10"), credit("0.20")]
        assert compute_balance(movements) == compute_balance(list(reversed(movements)))

    def test_repeated_calls_give_same_result(self):
        movements = [credit("1.10"), debit("0.30")]
        first = compute_balance(movements)
        assert compute_balance(movements) == first
        assert len(movements) == 2

    def test_predicate_filters_movements(self):
        movements = [
            credit("100.00", approved=True),
            credit("50.00", approved=False),
            debit("30.00", approved=True),
        ]
        balance = compute_balance(movements, predicate=lambda m: m.source.approved)
        assert balance == Decimal("70.00")

    def test_no_float_drift(self):
        movements = [credit("0.10") for _ in range(1000)]
        assert compute_balance(movements) == Decimal("100.00")

    def test_accepts_a_generator(self):
        assert compute_balance(credit(a) for a in ["1.00", "2.00"]) == Decimal("3.00")


class TestHelpers:

    def test_to_money_rounds_half_up(self):
        assert to_money("2.005") == Decimal("2.01")
        assert to_money(3) == Decimal("3.00")

    def test_total_sums_amounts(self):
        assert total([Decimal("300.00"), Decimal("700.00")]) == Decimal("1000.00")
        assert total([]) == Decimal("0.00")

    def test_credits_and_debits_wrap_records(self):
        withdrawals = [SimpleNamespace(amount=Decimal("900.00"))]
        repayments = [SimpleNamespace(amount=Decimal("300.00"))]
        balance = compute_balance(credits(withdrawals) + debits(repayments))
        assert balance == Decimal("600.00")

    def test_custom_amount_attribute(self):
        requests = [SimpleNamespace(requested_amount=Decimal("250.00"))]
        movements = credits(requests, amount_attr="requested_amount")
        assert movements[0].amount == Decimal("250.00")
        assert movements[0].source is requests[0]
