"""Derived figures over a user's transactions.

All functions here are pure: they read the transactions they are given and
an explicit point in time, so the same inputs always produce the same
output. Budget ``spent`` amounts are computed here on every read and are
never written back to storage.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence, Union

from models import TransactionType
from periods import local_now, month_to_date, trailing_window_start
from validation import ValidationError


class LedgerEntry(Protocol):
    type: TransactionType
    category: str
    amount_cents: int
    date: date


class BudgetFigures(Protocol):
    category: str
    limit_cents: int
    spent_cents: int


@dataclass(frozen=True)
class Summary:
    monthly_income_cents: float
    monthly_expenses_cents: float
    savings_rate: float
    category_spending: dict[str, int] = field(default_factory=dict)
    total_transactions: int = 0


@dataclass(frozen=True)
class BudgetStatus:
    category: str
    limit_cents: int
    spent_cents: int
    percentage: float
    over_budget: bool


def compute_spent(
    category: str,
    transactions: Iterable[LedgerEntry],
    as_of: Optional[Union[date, datetime]] = None,
) -> int:
    period = month_to_date(as_of or local_now())
    return sum(
        abs(txn.amount_cents)
        for txn in transactions
        if txn.type == TransactionType.expense
        and txn.category == category
        and period.contains(txn.date)
    )


def spent_by_category(
    transactions: Iterable[LedgerEntry],
    as_of: Optional[Union[date, datetime]] = None,
) -> dict[str, int]:
    """Month-to-date expense totals for every category in one pass."""
    period = month_to_date(as_of or local_now())
    totals: dict[str, int] = defaultdict(int)
    for txn in transactions:
        if txn.type != TransactionType.expense or not period.contains(txn.date):
            continue
        totals[txn.category] += abs(txn.amount_cents)
    return dict(totals)


def summarize(
    transactions: Iterable[LedgerEntry],
    window_months: int,
    now: Optional[Union[date, datetime]] = None,
) -> Summary:
    """Average monthly income and expenses over the trailing window.

    ``window_months`` must be at least 1.
    """
    if window_months < 1:
        raise ValidationError("window_months must be at least 1")
    window_start = trailing_window_start(now or local_now(), window_months)
    recent = [txn for txn in transactions if txn.date >= window_start]

    income_total = 0
    expense_total = 0
    category_spending: dict[str, int] = defaultdict(int)
    for txn in recent:
        if txn.type == TransactionType.income:
            income_total += txn.amount_cents
        elif txn.type == TransactionType.expense:
            expense_total += abs(txn.amount_cents)
            category_spending[txn.category] += abs(txn.amount_cents)

    monthly_income = income_total / window_months
    monthly_expenses = expense_total / window_months
    savings_rate = (
        (monthly_income - monthly_expenses) / monthly_income * 100
        if monthly_income > 0
        else 0.0
    )
    return Summary(
        monthly_income_cents=monthly_income,
        monthly_expenses_cents=monthly_expenses,
        savings_rate=savings_rate,
        category_spending=dict(category_spending),
        total_transactions=len(recent),
    )


def budget_status(budgets: Sequence[BudgetFigures]) -> list[BudgetStatus]:
    return [
        BudgetStatus(
            category=b.category,
            limit_cents=b.limit_cents,
            spent_cents=b.spent_cents,
            percentage=(b.spent_cents / b.limit_cents * 100) if b.limit_cents > 0 else 0.0,
            over_budget=b.spent_cents > b.limit_cents,
        )
        for b in budgets
    ]
