from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from calculations import (
    BudgetStatus,
    Summary,
    budget_status,
    compute_spent,
    spent_by_category,
    summarize,
)
from config import get_settings
from models import Budget, Transaction, TransactionType
from periods import Period, local_now, month_to_date
from schemas import BudgetIn, BudgetUpdate, TransactionIn, TransactionUpdate
from validation import (
    validate_and_normalize_transaction,
    validate_budget_category,
    validate_budget_limit,
)


logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


def get_current_user_id() -> int:
    return get_settings().default_user_id


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    query: Optional[str] = None
    sort: str = "date-desc"


_SORT_ORDER = {
    "date-desc": (Transaction.date.desc(), Transaction.id.desc()),
    "date-asc": (Transaction.date.asc(), Transaction.id.asc()),
    "amount-desc": (func.abs(Transaction.amount_cents).desc(), Transaction.id.desc()),
    "amount-asc": (func.abs(Transaction.amount_cents).asc(), Transaction.id.asc()),
    "name-asc": (Transaction.name.asc(), Transaction.id.asc()),
    "name-desc": (Transaction.name.desc(), Transaction.id.desc()),
}

SORT_KEYS = tuple(_SORT_ORDER)


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _filtered(self, period: Period, filters: TransactionFilters):
        stmt = select(Transaction).where(
            Transaction.user_id == self.user_id,
            Transaction.date.between(period.start, period.end),
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.name).like(like),
                    func.lower(Transaction.category).like(like),
                )
            )
        return stmt

    def list_all(self) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list(
        self,
        period: Period,
        filters: TransactionFilters,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        order = _SORT_ORDER.get(filters.sort)
        if order is None:
            raise ValueError(f"Unknown sort: {filters.sort}")
        stmt = (
            self._filtered(period, filters)
            .order_by(*order)
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def totals(self, period: Period, filters: TransactionFilters) -> dict[str, int]:
        subquery = self._filtered(period, filters).subquery()
        income = self.session.execute(
            select(func.coalesce(func.sum(subquery.c.amount_cents), 0)).where(
                subquery.c.type == TransactionType.income
            )
        ).scalar_one()
        expenses = self.session.execute(
            select(func.coalesce(func.sum(subquery.c.amount_cents), 0)).where(
                subquery.c.type == TransactionType.expense
            )
        ).scalar_one()
        return {
            "income_cents": int(income or 0),
            "expenses_cents": abs(int(expenses or 0)),
        }

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction).where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        categories = BudgetService(self.session, self.user_id).categories()
        normalized = validate_and_normalize_transaction(data, categories)
        txn = Transaction(
            user_id=self.user_id,
            name=data.name,
            category=normalized.category,
            amount_cents=normalized.amount_cents,
            date=data.date,
            type=normalized.type,
            notes=data.notes or None,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} user_id={self.user_id} "
            f"type={txn.type.value} category={txn.category}"
        )
        return txn

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        categories = BudgetService(self.session, self.user_id).categories()
        normalized = validate_and_normalize_transaction(data, categories, existing=txn)

        txn.type = normalized.type
        txn.category = normalized.category
        txn.amount_cents = normalized.amount_cents
        if data.name is not None:
            txn.name = data.name
        if data.date is not None:
            txn.date = data.date
        if "notes" in data.model_fields_set:
            txn.notes = data.notes or None

        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_updated: id={txn.id} user_id={self.user_id} "
            f"type={txn.type.value} category={txn.category}"
        )
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id} user_id={self.user_id}")


@dataclass(frozen=True)
class BudgetView:
    id: int
    category: str
    limit_cents: int
    icon: str
    color: str
    spent_cents: int

    @classmethod
    def from_budget(cls, budget: Budget, spent_cents: int) -> "BudgetView":
        return cls(
            id=budget.id,
            category=budget.category,
            limit_cents=budget.limit_cents,
            icon=budget.icon,
            color=budget.color,
            spent_cents=spent_cents,
        )

    @property
    def remaining_cents(self) -> int:
        return self.limit_cents - self.spent_cents

    @property
    def percentage(self) -> int:
        if self.limit_cents <= 0:
            return 0
        return min(math.floor(self.spent_cents / self.limit_cents * 100 + 0.5), 100)

    @property
    def over_budget(self) -> bool:
        return self.spent_cents > self.limit_cents


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.category.asc(), Budget.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def categories(self) -> list[str]:
        stmt = select(Budget.category).where(Budget.user_id == self.user_id)
        return list(self.session.scalars(stmt).all())

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFoundError("Budget not found")
        return budget

    def create(self, data: BudgetIn) -> Budget:
        validate_budget_category(data.category, self.categories())
        validate_budget_limit(data.limit_cents)
        budget = Budget(
            user_id=self.user_id,
            category=data.category,
            limit_cents=data.limit_cents,
            icon=data.icon,
            color=data.color,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_created: id={budget.id} user_id={self.user_id} "
            f"category={budget.category}"
        )
        return budget

    def update(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        if data.category is not None:
            validate_budget_category(
                data.category, self.categories(), current=budget.category
            )
        if data.limit_cents is not None:
            validate_budget_limit(data.limit_cents)

        if data.category is not None:
            budget.category = data.category
        if data.limit_cents is not None:
            budget.limit_cents = data.limit_cents
        if data.icon is not None:
            budget.icon = data.icon
        if data.color is not None:
            budget.color = data.color
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_updated: id={budget.id} user_id={self.user_id} "
            f"category={budget.category}"
        )
        return budget

    def delete(self, budget_id: int) -> None:
        # Transactions filed under this category are left as they are.
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: id={budget_id} user_id={self.user_id}")

    def list_with_spent(self, as_of: Optional[datetime] = None) -> list[BudgetView]:
        as_of = as_of or local_now()
        period = month_to_date(as_of)
        transactions = self.session.scalars(
            select(Transaction).where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.date.between(period.start, period.end),
            )
        ).all()
        spent = spent_by_category(transactions, as_of)
        return [
            BudgetView.from_budget(budget, spent.get(budget.category, 0))
            for budget in self.list_all()
        ]

    def get_with_spent(
        self, budget_id: int, as_of: Optional[datetime] = None
    ) -> BudgetView:
        budget = self.get(budget_id)
        as_of = as_of or local_now()
        transactions = self.session.scalars(
            select(Transaction).where(
                Transaction.user_id == self.user_id,
                Transaction.category == budget.category,
            )
        ).all()
        return BudgetView.from_budget(
            budget, compute_spent(budget.category, transactions, as_of)
        )

    def overview(self, as_of: Optional[datetime] = None) -> dict[str, object]:
        views = self.list_with_spent(as_of)
        return {
            "total_limit_cents": sum(v.limit_cents for v in views),
            "total_spent_cents": sum(v.spent_cents for v in views),
            "over_budget_count": sum(1 for v in views if v.over_budget),
            "budgets": views,
        }


class SummaryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def summary(
        self, window_months: Optional[int] = None, now: Optional[datetime] = None
    ) -> tuple[Summary, list[BudgetStatus]]:
        window_months = window_months or get_settings().summary_window_months
        now = now or local_now()
        transactions = TransactionService(self.session, self.user_id).list_all()
        result = summarize(transactions, window_months, now)
        budgets = BudgetService(self.session, self.user_id).list_with_spent(now)
        return result, budget_status(budgets)
