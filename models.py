import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class RecurrenceType(str, Enum):
    weekly = "weekly"
    monthly = "monthly"

    @property
    def threshold_days(self) -> int:
        return RECURRENCE_THRESHOLD_DAYS[self]


RECURRENCE_THRESHOLD_DAYS = {
    RecurrenceType.weekly: 7,
    RecurrenceType.monthly: 30,
}

RECURRENCE_TYPE_ENUM = SAEnum(
    RecurrenceType,
    name="recurrencetype",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class UserCategory(Base, TimestampMixin):
    __tablename__ = "user_categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_category_user_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Expense(Base, TimestampMixin):
    """A dated income or expense entry, or a recurring template."""

    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_income: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category_name: Mapped[Optional[str]] = mapped_column(String(100))
    split_with: Mapped[Optional[str]] = mapped_column(String(200))
    is_impulse: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_type: Mapped[Optional[RecurrenceType]] = mapped_column(
        RECURRENCE_TYPE_ENUM
    )
    last_generated_date: Mapped[Optional[dt.date]] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_expense_amount_non_negative"),
        CheckConstraint(
            "NOT is_recurring OR recurrence_type IS NOT NULL",
            name="ck_expense_recurring_has_type",
        ),
        Index("ix_expenses_user_date", "user_id", "date"),
        Index("ix_expenses_recurring", "is_recurring"),
    )
