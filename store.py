from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Expense, RecurrenceType


class StoreError(RuntimeError):
    pass


class CheckpointConflict(StoreError):
    """The template checkpoint moved after it was read."""


@dataclass(frozen=True)
class Template:
    """Column values of a recurring template, detached from the session."""

    id: int
    user_id: str
    amount: Decimal
    title: str
    date: date
    is_income: bool
    category_name: Optional[str]
    split_with: Optional[str]
    recurrence_type: RecurrenceType
    last_generated_date: Optional[date]

    @classmethod
    def from_expense(cls, expense: Expense) -> "Template":
        return cls(
            id=expense.id,
            user_id=expense.user_id,
            amount=expense.amount,
            title=expense.title,
            date=expense.date,
            is_income=expense.is_income,
            category_name=expense.category_name,
            split_with=expense.split_with,
            recurrence_type=expense.recurrence_type,
            last_generated_date=expense.last_generated_date,
        )

    @property
    def generation_anchor(self) -> date:
        return self.last_generated_date or self.date


class ExpenseStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_templates(self) -> list[Template]:
        stmt = select(Expense).where(
            Expense.is_recurring.is_(True),
            Expense.recurrence_type.is_not(None),
        )
        try:
            return [Template.from_expense(e) for e in self.session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to fetch recurring templates") from exc

    def insert(self, expense: Expense) -> int:
        try:
            self.session.add(expense)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert expense {expense.title!r}") from exc
        return expense.id

    def update_checkpoint(
        self, template_id: int, expected: Optional[date], new_date: date
    ) -> None:
        if expected is None:
            guard = Expense.last_generated_date.is_(None)
        else:
            guard = Expense.last_generated_date == expected
        stmt = (
            update(Expense)
            .where(Expense.id == template_id, guard)
            .values(last_generated_date=new_date)
        )
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Failed to update checkpoint for template {template_id}"
            ) from exc
        if result.rowcount != 1:
            raise CheckpointConflict(
                f"Checkpoint for template {template_id} changed since it was read"
            )

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError("Failed to commit") from exc

    def rollback(self) -> None:
        self.session.rollback()
