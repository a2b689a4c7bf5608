from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import DatePlacement, Recurrence, TransactionStatus, TransactionType


def check_placement(
    recurrence: Recurrence,
    date_placement: DatePlacement,
    custom_day: Optional[int],
) -> None:
    if recurrence == Recurrence.once and date_placement != DatePlacement.fixed:
        raise ValueError("One-time transactions must use a fixed date")
    if date_placement == DatePlacement.custom_day:
        if custom_day is None:
            raise ValueError("custom_day is required for custom_day placement")
        if not 1 <= custom_day <= 31:
            raise ValueError("custom_day must be between 1 and 31")


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: TransactionType


class TemplateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: TransactionType = TransactionType.expense
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., gt=0)
    category_id: Optional[int] = None
    baseline_date: date
    original_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.once
    date_placement: DatePlacement = DatePlacement.fixed
    custom_day: Optional[int] = Field(default=None, ge=1, le=31)
    status: TransactionStatus = TransactionStatus.pending
    cleared: bool = False

    @model_validator(mode="after")
    def _placement_matches_recurrence(self) -> "TemplateIn":
        check_placement(self.recurrence, self.date_placement, self.custom_day)
        return self


class TemplateUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    model_config = ConfigDict(extra="forbid")

    type: Optional[TransactionType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount_cents: Optional[int] = Field(default=None, gt=0)
    category_id: Optional[int] = None
    baseline_date: Optional[date] = None
    original_date: Optional[date] = None
    recurrence: Optional[Recurrence] = None
    date_placement: Optional[DatePlacement] = None
    custom_day: Optional[int] = Field(default=None, ge=1, le=31)
    status: Optional[TransactionStatus] = None
    cleared: Optional[bool] = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: TransactionType
    description: str
    amount_cents: int
    category_id: Optional[int]
    baseline_date: date
    original_date: Optional[date]
    recurrence: Recurrence
    date_placement: DatePlacement
    custom_day: Optional[int]
    status: TransactionStatus
    cleared: bool


class MonthlyStatusIn(BaseModel):
    status: TransactionStatus
    cleared: bool = False


class MonthlyStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    template_id: int
    year: int
    month: int
    status: TransactionStatus
    cleared: bool


class OccurrenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    template_id: int
    type: TransactionType
    description: str
    amount_cents: int
    category_id: Optional[int]
    baseline_date: date
    original_date: Optional[date]
    recurrence: Recurrence
    date_placement: DatePlacement
    custom_day: Optional[int]
    occurrence_date: date
    status: TransactionStatus
    cleared: bool
    virtual: bool


class CategorySummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    amount_cents: int
    percentage: int


class MonthlySummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    income_cents: int
    expense_cents: int
    remaining_cents: int
    total_transactions: int
    paid_transactions: int
    pending_transactions: int
    percent_paid: int
    categories: list[CategorySummaryOut]
