"""
Ledger aggregator: the single place balances are derived.

Every balance in the system (petty cash box, loan outstanding,
garnishment paid-so-far) is a fold over raw movements through
compute_balance(). Nothing else sums money, so every call site
applies the same filtering and the same rounding.

Arithmetic is exact Decimal, never float, so there is no
cent-level drift however many movements are folded.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable

from finance_console.models.enums import EntryType


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Movement:
    """A signed monetary movement: CREDIT adds, DEBIT subtracts."""
    amount: Decimal
    direction: EntryType
    # The source record, so predicates can filter on its fields
    source: object = None


def to_money(value) -> Decimal:
    """Quantize a value to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_balance(
    movements: Iterable[Movement],
    predicate: Callable[[Movement], bool] | None = None,
) -> Decimal:
    """
    Net balance = sum(credits) - sum(debits).

    The predicate is applied first; movements it rejects are
    ignored. Empty input gives 0.00. The input is not mutated and
    its order does not affect the result.
    """
    balance = ZERO
    for movement in movements:
        if predicate is not None and not predicate(movement):
            continue
        amount = to_money(movement.amount)
        if movement.direction == EntryType.CREDIT:
            balance += amount
        else:
            balance -= amount
    return balance.quantize(CENT)


def total(amounts: Iterable[Decimal]) -> Decimal:
    """Sum plain amounts with the same arithmetic as compute_balance()."""
    return compute_balance(
        Movement(amount=amount, direction=EntryType.CREDIT)
        for amount in amounts
    )


def credits(records: Iterable, amount_attr: str = "amount") -> list[Movement]:
    """Wrap records as CREDIT movements."""
    return [
        Movement(getattr(r, amount_attr), EntryType.CREDIT, r) for r in records
    ]


def debits(records: Iterable, amount_attr: str = "amount") -> list[Movement]:
    """Wrap records as DEBIT movements."""
    return [
        Movement(getattr(r, amount_attr), EntryType.DEBIT, r) for r in records
    ]
