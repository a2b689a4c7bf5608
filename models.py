from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionType(str, Enum):
    expense = "expense"
    income = "income"


class TransactionStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    cleared = "cleared"


class Recurrence(str, Enum):
    once = "once"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class DatePlacement(str, Enum):
    fixed = "fixed"
    first_of_month = "first_of_month"
    last_of_month = "last_of_month"
    custom_day = "custom_day"


PAID_STATUSES = frozenset({TransactionStatus.paid, TransactionStatus.cleared})


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )

    templates: Mapped[list["TransactionTemplate"]] = relationship(
        "TransactionTemplate", back_populates="category"
    )


class TransactionTemplate(Base, TimestampMixin):
    """A user-entered transaction, either one-time or the source of a recurrence."""

    __tablename__ = "transaction_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False, default=TransactionType.expense
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    baseline_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_date: Mapped[Optional[date]] = mapped_column(Date)
    recurrence: Mapped[Recurrence] = mapped_column(
        SAEnum(Recurrence), nullable=False, default=Recurrence.once
    )
    date_placement: Mapped[DatePlacement] = mapped_column(
        SAEnum(DatePlacement), nullable=False, default=DatePlacement.fixed
    )
    custom_day: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.pending
    )
    cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="templates"
    )
    overrides: Mapped[list["MonthlyStatusOverride"]] = relationship(
        "MonthlyStatusOverride",
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_template_amount_positive"),
        CheckConstraint(
            "custom_day IS NULL OR (custom_day >= 1 AND custom_day <= 31)",
            name="ck_template_custom_day_range",
        ),
        Index("ix_templates_baseline_date", "baseline_date"),
        Index("ix_templates_recurrence", "recurrence"),
    )


class MonthlyStatusOverride(Base, TimestampMixin):
    __tablename__ = "monthly_status_overrides"

    template_id: Mapped[int] = mapped_column(
        ForeignKey("transaction_templates.id", ondelete="CASCADE"), primary_key=True
    )
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    month: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.pending
    )
    cleared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    template: Mapped["TransactionTemplate"] = relationship(
        "TransactionTemplate", back_populates="overrides"
    )

    __table_args__ = (
        CheckConstraint("month >= 1 AND month <= 12", name="ck_override_month_range"),
        Index("ix_override_year_month", "year", "month"),
    )

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.template_id, self.year, self.month)
