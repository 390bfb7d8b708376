"""Consistency rules for transactions and budgets.

Every transaction mutation, create or update, goes through
``validate_and_normalize_transaction``. It resolves the effective type,
category and signed amount from the proposed fields and, on updates, the
stored transaction. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from rapidfuzz.distance import Levenshtein

from models import INCOME_CATEGORY, TransactionType


MAX_SUGGESTION_DISTANCE = 2


class ValidationError(ValueError):
    def __init__(self, message: str, suggestions: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or []


class TransactionFields(Protocol):
    type: Optional[TransactionType]
    category: Optional[str]
    amount_cents: Optional[int]


@dataclass(frozen=True)
class NormalizedTransaction:
    type: TransactionType
    category: str
    amount_cents: int


def signed_amount(amount_cents: int, txn_type: TransactionType) -> int:
    if txn_type == TransactionType.expense:
        return -abs(amount_cents)
    return abs(amount_cents)


def suggest_categories(category: str, choices: Iterable[str]) -> list[str]:
    needle = category.strip().lower()
    scored: list[tuple[int, str]] = []
    for choice in set(choices):
        dist = int(Levenshtein.distance(needle, choice.strip().lower()))
        if dist <= MAX_SUGGESTION_DISTANCE:
            scored.append((dist, choice))
    scored.sort()
    return [choice for _, choice in scored]


def validate_and_normalize_transaction(
    payload: TransactionFields,
    budget_categories: Iterable[str],
    existing: Optional[TransactionFields] = None,
) -> NormalizedTransaction:
    supplied_type = getattr(payload, "type", None)
    supplied_category = getattr(payload, "category", None)
    supplied_amount = getattr(payload, "amount_cents", None)

    txn_type = supplied_type or (existing.type if existing is not None else None)
    if txn_type is None:
        raise ValidationError("type is required")
    txn_type = TransactionType(txn_type)

    if supplied_amount is not None:
        if supplied_amount <= 0:
            raise ValidationError("amount must be positive")
        magnitude = supplied_amount
    elif existing is not None and existing.amount_cents is not None:
        magnitude = existing.amount_cents
    else:
        raise ValidationError("amount is required")

    if txn_type == TransactionType.income:
        return NormalizedTransaction(
            type=txn_type,
            category=INCOME_CATEGORY,
            amount_cents=signed_amount(magnitude, txn_type),
        )

    if supplied_category is not None:
        category = supplied_category
    elif existing is not None and existing.category is not None:
        category = existing.category
    else:
        raise ValidationError("category is required")

    # A stored expense whose budget has since been deleted keeps its
    # category as long as neither the category nor the type is being changed.
    keeps_existing_category = (
        existing is not None
        and supplied_category is None
        and TransactionType(existing.type) == txn_type
    )
    categories = list(budget_categories)
    if not keeps_existing_category and category not in categories:
        raise ValidationError(
            "category must match an existing budget category",
            suggestions=suggest_categories(category, categories),
        )

    return NormalizedTransaction(
        type=txn_type,
        category=category,
        amount_cents=signed_amount(magnitude, txn_type),
    )


def validate_budget_category(
    category: str,
    existing_categories: Iterable[str],
    *,
    current: Optional[str] = None,
) -> str:
    """Check a proposed budget category against the user's other budgets.

    ``current`` is the category of the budget being edited, if any; keeping
    it unchanged is not a conflict.
    """
    if not category or not category.strip():
        raise ValidationError("category is required")
    if category == INCOME_CATEGORY:
        raise ValidationError("cannot use reserved category")
    if category != current and category in set(existing_categories):
        raise ValidationError("budget category already exists")
    return category


def validate_budget_limit(limit_cents: int) -> int:
    if limit_cents <= 0:
        raise ValidationError("limit must be positive")
    return limit_cents
