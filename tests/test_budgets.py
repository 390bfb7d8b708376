from datetime import date, datetime

import pytest

from models import INCOME_CATEGORY, TransactionType
from schemas import BudgetIn, BudgetUpdate, TransactionIn, TransactionUpdate
from services import BudgetService, NotFoundError, SummaryService, TransactionService
from validation import ValidationError


AS_OF = datetime(2025, 3, 20, 18, 0)


def _budget_in(category: str, limit_cents: int) -> BudgetIn:
    return BudgetIn(category=category, limit_cents=limit_cents, icon="tag", color="#888")


def _expense(category: str, cents: int, day: date) -> TransactionIn:
    return TransactionIn(
        name=f"{category} purchase",
        category=category,
        amount_cents=cents,
        date=day,
        type=TransactionType.expense,
    )


def test_budget_for_income_category_is_rejected(session) -> None:
    with pytest.raises(ValidationError, match="cannot use reserved category"):
        BudgetService(session).create(_budget_in(INCOME_CATEGORY, 1_000))


def test_budget_category_is_unique_per_user(session) -> None:
    BudgetService(session, 1).create(_budget_in("Food", 1_000))
    with pytest.raises(ValidationError, match="already exists"):
        BudgetService(session, 1).create(_budget_in("Food", 2_000))
    other = BudgetService(session, 2).create(_budget_in("Food", 2_000))
    assert other.user_id == 2


def test_budget_limit_must_be_positive(session) -> None:
    with pytest.raises(ValidationError, match="limit must be positive"):
        BudgetService(session).create(_budget_in("Food", 0))


def test_budget_cannot_be_renamed_to_income(session) -> None:
    service = BudgetService(session)
    budget = service.create(_budget_in("Food", 1_000))
    with pytest.raises(ValidationError):
        service.update(budget.id, BudgetUpdate(category=INCOME_CATEGORY))
    updated = service.update(budget.id, BudgetUpdate(category="Food", limit_cents=2_500))
    assert updated.limit_cents == 2_500


def test_rejected_budget_update_changes_nothing(session) -> None:
    service = BudgetService(session)
    budget = service.create(_budget_in("Food", 1_000))
    with pytest.raises(ValidationError, match="limit must be positive"):
        service.update(budget.id, BudgetUpdate(category="Groceries", limit_cents=0))

    service.create(_budget_in("Housing", 5_000))
    session.expire_all()
    reloaded = service.get(budget.id)
    assert reloaded.category == "Food"
    assert reloaded.limit_cents == 1_000


def test_spent_is_derived_for_current_month(session) -> None:
    budgets = BudgetService(session)
    food = budgets.create(_budget_in("Food", 10_000))
    budgets.create(_budget_in("Housing", 150_000))
    txns = TransactionService(session)
    txns.create(_expense("Food", 5_000, date(2025, 3, 1)))
    txns.create(_expense("Food", 3_000, date(2025, 2, 28)))
    txns.create(_expense("Food", 7_000, date(2025, 3, 20)))
    txns.create(_expense("Food", 9_999, date(2025, 3, 21)))

    views = {v.category: v for v in budgets.list_with_spent(AS_OF)}
    assert views["Food"].spent_cents == 12_000
    assert views["Food"].remaining_cents == -2_000
    assert views["Food"].percentage == 100
    assert views["Food"].over_budget is True
    assert views["Housing"].spent_cents == 0
    assert views["Housing"].percentage == 0

    single = budgets.get_with_spent(food.id, AS_OF)
    assert single.spent_cents == 12_000


def test_spent_follows_transaction_edits(session) -> None:
    budgets = BudgetService(session)
    budgets.create(_budget_in("Food", 10_000))
    budgets.create(_budget_in("Housing", 150_000))
    txns = TransactionService(session)
    txn = txns.create(_expense("Food", 5_000, date(2025, 3, 2)))

    txns.update(txn.id, TransactionUpdate(category="Housing"))
    views = {v.category: v.spent_cents for v in budgets.list_with_spent(AS_OF)}
    assert views == {"Food": 0, "Housing": 5_000}


def test_deleting_budget_keeps_its_transactions(session) -> None:
    budgets = BudgetService(session)
    gym = budgets.create(_budget_in("Gym", 5_000))
    txns = TransactionService(session)
    txn = txns.create(_expense("Gym", 4_999, date(2025, 3, 3)))

    budgets.delete(gym.id)

    stored = txns.get(txn.id)
    assert stored.category == "Gym"
    renamed = txns.update(txn.id, TransactionUpdate(name="Gym membership"))
    assert renamed.category == "Gym"
    with pytest.raises(NotFoundError):
        budgets.get(gym.id)


def test_overview_totals(session) -> None:
    budgets = BudgetService(session)
    budgets.create(_budget_in("Food", 10_000))
    budgets.create(_budget_in("Shopping", 5_000))
    txns = TransactionService(session)
    txns.create(_expense("Food", 2_500, date(2025, 3, 4)))
    txns.create(_expense("Shopping", 6_000, date(2025, 3, 5)))

    overview = budgets.overview(AS_OF)
    assert overview["total_limit_cents"] == 15_000
    assert overview["total_spent_cents"] == 8_500
    assert overview["over_budget_count"] == 1


def test_summary_service_reports_budget_status(session) -> None:
    BudgetService(session).create(_budget_in("Food", 10_000))
    txns = TransactionService(session)
    txns.create(_expense("Food", 15_000, date(2025, 3, 4)))
    txns.create(
        TransactionIn(
            name="Salary",
            category=INCOME_CATEGORY,
            amount_cents=300_000,
            date=date(2025, 3, 1),
            type=TransactionType.income,
        )
    )

    summary, statuses = SummaryService(session).summary(3, AS_OF)
    assert summary.monthly_income_cents == pytest.approx(100_000)
    assert summary.monthly_expenses_cents == pytest.approx(5_000)
    assert summary.savings_rate == pytest.approx(95.0)
    assert summary.total_transactions == 2
    assert [(s.category, s.over_budget) for s in statuses] == [("Food", True)]
    assert statuses[0].percentage == pytest.approx(150.0)
