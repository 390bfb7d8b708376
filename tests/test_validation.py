from types import SimpleNamespace

import pytest

from models import INCOME_CATEGORY, TransactionType
from schemas import TransactionIn, TransactionUpdate
from validation import (
    ValidationError,
    suggest_categories,
    validate_and_normalize_transaction,
    validate_budget_category,
    validate_budget_limit,
)


BUDGETS = ["Food", "Housing", "Transportation"]


def _payload(**fields):
    base = {"type": None, "category": None, "amount_cents": None}
    base.update(fields)
    return SimpleNamespace(**base)


def test_expense_amount_is_stored_negative() -> None:
    result = validate_and_normalize_transaction(
        _payload(type=TransactionType.expense, category="Food", amount_cents=5_000),
        BUDGETS,
    )
    assert result.type == TransactionType.expense
    assert result.category == "Food"
    assert result.amount_cents == -5_000


def test_income_is_forced_into_income_category() -> None:
    result = validate_and_normalize_transaction(
        _payload(type=TransactionType.income, category="Food", amount_cents=100_000),
        BUDGETS,
    )
    assert result.category == INCOME_CATEGORY
    assert result.amount_cents == 100_000


def test_income_is_accepted_without_any_budgets() -> None:
    result = validate_and_normalize_transaction(
        _payload(type=TransactionType.income, category="Salary", amount_cents=1),
        [],
    )
    assert result.category == INCOME_CATEGORY


def test_expense_with_unknown_category_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_and_normalize_transaction(
            _payload(type=TransactionType.expense, category="Travel", amount_cents=10),
            BUDGETS,
        )
    assert str(excinfo.value) == "category must match an existing budget category"


def test_category_match_is_exact() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_and_normalize_transaction(
            _payload(type=TransactionType.expense, category="food", amount_cents=10),
            BUDGETS,
        )
    assert excinfo.value.suggestions == ["Food"]


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amount_is_rejected(amount: int) -> None:
    with pytest.raises(ValidationError, match="amount must be positive"):
        validate_and_normalize_transaction(
            _payload(type=TransactionType.expense, category="Food", amount_cents=amount),
            BUDGETS,
        )


def test_type_is_required_on_create() -> None:
    with pytest.raises(ValidationError, match="type is required"):
        validate_and_normalize_transaction(
            _payload(category="Food", amount_cents=10), BUDGETS
        )


def test_switching_expense_to_income_rederives_category_and_sign() -> None:
    existing = SimpleNamespace(
        type=TransactionType.expense, category="Food", amount_cents=-4_250
    )
    result = validate_and_normalize_transaction(
        TransactionUpdate(type=TransactionType.income), BUDGETS, existing=existing
    )
    assert result.type == TransactionType.income
    assert result.category == INCOME_CATEGORY
    assert result.amount_cents == 4_250


def test_switching_income_to_expense_requires_budget_category() -> None:
    existing = SimpleNamespace(
        type=TransactionType.income, category=INCOME_CATEGORY, amount_cents=4_250
    )
    with pytest.raises(ValidationError):
        validate_and_normalize_transaction(
            TransactionUpdate(type=TransactionType.expense), BUDGETS, existing=existing
        )

    result = validate_and_normalize_transaction(
        TransactionUpdate(type=TransactionType.expense, category="Housing"),
        BUDGETS,
        existing=existing,
    )
    assert result.category == "Housing"
    assert result.amount_cents == -4_250


def test_new_amount_takes_sign_from_existing_type() -> None:
    existing = SimpleNamespace(
        type=TransactionType.expense, category="Food", amount_cents=-100
    )
    result = validate_and_normalize_transaction(
        TransactionUpdate(amount_cents=900), BUDGETS, existing=existing
    )
    assert result.amount_cents == -900
    assert result.category == "Food"


def test_orphaned_category_survives_unrelated_update() -> None:
    existing = SimpleNamespace(
        type=TransactionType.expense, category="Gym", amount_cents=-2_000
    )
    result = validate_and_normalize_transaction(
        TransactionUpdate(name="Gym membership"), BUDGETS, existing=existing
    )
    assert result.category == "Gym"
    assert result.amount_cents == -2_000


def test_explicit_orphaned_category_is_rejected() -> None:
    existing = SimpleNamespace(
        type=TransactionType.expense, category="Gym", amount_cents=-2_000
    )
    with pytest.raises(ValidationError):
        validate_and_normalize_transaction(
            TransactionUpdate(category="Gym"), BUDGETS, existing=existing
        )


def test_pydantic_payload_is_accepted_on_create() -> None:
    data = TransactionIn(
        name="Rent",
        category="Housing",
        amount_cents=120_000,
        date="2025-01-01",
        type=TransactionType.expense,
    )
    result = validate_and_normalize_transaction(data, BUDGETS)
    assert result.amount_cents == -120_000


def test_reserved_budget_category_is_rejected() -> None:
    with pytest.raises(ValidationError, match="cannot use reserved category"):
        validate_budget_category(INCOME_CATEGORY, BUDGETS)


def test_duplicate_budget_category_is_rejected() -> None:
    with pytest.raises(ValidationError, match="budget category already exists"):
        validate_budget_category("Food", BUDGETS)


def test_keeping_current_budget_category_is_allowed() -> None:
    assert validate_budget_category("Food", BUDGETS, current="Food") == "Food"


@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limit_is_rejected(limit: int) -> None:
    with pytest.raises(ValidationError, match="limit must be positive"):
        validate_budget_limit(limit)


def test_suggestions_are_ordered_by_distance() -> None:
    assert suggest_categories("Fod", ["Food", "Foods", "Housing"]) == [
        "Food",
        "Foods",
    ]
