from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import NotFoundError, StoreError, ValidationError
from models import (
    PAID_STATUSES,
    Category,
    DatePlacement,
    MonthlyStatusOverride,
    Recurrence,
    TransactionStatus,
    TransactionTemplate,
    TransactionType,
)
from periods import MonthPeriod, validate_year_month
from recurrence import effective_status, fires, local_today, resolve_date
from schemas import CategoryIn, TemplateIn, TemplateUpdate, check_placement

logger = logging.getLogger(__name__)

OverrideKey = tuple[int, int, int]

DEFAULT_CATEGORIES: list[tuple[str, TransactionType]] = [
    ("Housing", TransactionType.expense),
    ("Utilities", TransactionType.expense),
    ("Groceries", TransactionType.expense),
    ("Transportation", TransactionType.expense),
    ("Health", TransactionType.expense),
    ("Insurance", TransactionType.expense),
    ("Dining", TransactionType.expense),
    ("Entertainment", TransactionType.expense),
    ("Shopping", TransactionType.expense),
    ("Personal", TransactionType.expense),
    ("Education", TransactionType.expense),
    ("Travel", TransactionType.expense),
    ("Debt", TransactionType.expense),
    ("Savings", TransactionType.expense),
    ("Gifts", TransactionType.expense),
    ("Salary", TransactionType.income),
    ("Investments", TransactionType.income),
    ("Interest", TransactionType.income),
    ("Bonus", TransactionType.income),
    ("Other Income", TransactionType.income),
]

UNKNOWN_CATEGORY_NAME = "Unknown"

NON_NULLABLE_FIELDS = (
    "type",
    "description",
    "amount_cents",
    "baseline_date",
    "recurrence",
    "date_placement",
    "status",
    "cleared",
)


@contextmanager
def store_errors(session: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception(f"store_error: action={action}")
        raise StoreError(f"Failed to {action}") from exc


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    value = Decimal(part * 100) / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Occurrence:
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

    @classmethod
    def from_template(
        cls,
        template: TransactionTemplate,
        *,
        occurrence_date: date,
        status: TransactionStatus,
        cleared: bool,
        virtual: bool,
    ) -> "Occurrence":
        return cls(
            template_id=template.id,
            type=template.type,
            description=template.description,
            amount_cents=template.amount_cents,
            category_id=template.category_id,
            baseline_date=template.baseline_date,
            original_date=template.original_date,
            recurrence=template.recurrence,
            date_placement=template.date_placement,
            custom_day=template.custom_day,
            occurrence_date=occurrence_date,
            status=status,
            cleared=cleared,
            virtual=virtual,
        )

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_STATUSES


@dataclass(frozen=True)
class CategorySummary:
    id: int
    name: str
    amount_cents: int
    percentage: int


@dataclass(frozen=True)
class MonthlySummary:
    income_cents: int
    expense_cents: int
    remaining_cents: int
    total_transactions: int
    paid_transactions: int
    pending_transactions: int
    percent_paid: int
    categories: list[CategorySummary]


def summarize(
    occurrences: Iterable[Occurrence],
    category_names: Optional[Mapping[int, str]] = None,
) -> MonthlySummary:
    """Reduce a month's occurrences to totals and an expense breakdown.

    Only expenses take part in the paid/pending tally; income has no
    payment status worth tracking.
    """
    category_names = category_names or {}
    income = 0
    expenses = 0
    total = 0
    paid = 0
    by_category: dict[int, int] = {}

    for occ in occurrences:
        if occ.type == TransactionType.income:
            income += occ.amount_cents
            continue
        expenses += occ.amount_cents
        total += 1
        if occ.is_paid:
            paid += 1
        if occ.category_id is not None:
            by_category[occ.category_id] = (
                by_category.get(occ.category_id, 0) + occ.amount_cents
            )

    categories = [
        CategorySummary(
            id=category_id,
            name=category_names.get(category_id, UNKNOWN_CATEGORY_NAME),
            amount_cents=amount,
            percentage=_percent(amount, expenses),
        )
        for category_id, amount in by_category.items()
    ]
    categories.sort(key=lambda c: (-c.amount_cents, c.id))

    return MonthlySummary(
        income_cents=income,
        expense_cents=expenses,
        remaining_cents=income - expenses,
        total_transactions=total,
        paid_transactions=paid,
        pending_transactions=total - paid,
        percent_paid=_percent(paid, total),
        categories=categories,
    )


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Category]:
        with store_errors(self.session, "list categories"):
            stmt = select(Category).order_by(Category.type, Category.id)
            return list(self.session.scalars(stmt).all())

    def list_by_type(self, txn_type: TransactionType) -> list[Category]:
        with store_errors(self.session, "list categories"):
            stmt = (
                select(Category)
                .where(Category.type == txn_type)
                .order_by(Category.id)
            )
            return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        with store_errors(self.session, "load category"):
            category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def names_for(self, category_ids: Iterable[int]) -> dict[int, str]:
        ids = set(category_ids)
        if not ids:
            return {}
        with store_errors(self.session, "load categories"):
            rows = self.session.execute(
                select(Category.id, Category.name).where(Category.id.in_(ids))
            ).all()
        return {row.id: row.name for row in rows}

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValidationError("Category name is required")
        category = Category(name=name, type=data.type)
        try:
            self.session.add(category)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationError("Category already exists") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("store_error: action=create category")
            raise StoreError("Failed to create category") from exc
        self.session.refresh(category)
        return category

    def ensure_defaults(self) -> int:
        with store_errors(self.session, "seed categories"):
            existing = self.session.scalar(select(Category.id).limit(1))
            if existing is not None:
                return 0
            for name, txn_type in DEFAULT_CATEGORIES:
                self.session.add(Category(name=name, type=txn_type))
            self.session.commit()
        logger.info(f"categories_seeded: count={len(DEFAULT_CATEGORIES)}")
        return len(DEFAULT_CATEGORIES)


class TemplateService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, template_id: int) -> TransactionTemplate:
        with store_errors(self.session, "load transaction"):
            template = self.session.get(TransactionTemplate, template_id)
        if not template:
            raise NotFoundError("Transaction not found")
        return template

    def list(self) -> list[TransactionTemplate]:
        with store_errors(self.session, "list transactions"):
            stmt = select(TransactionTemplate).order_by(TransactionTemplate.id)
            return list(self.session.scalars(stmt).all())

    def candidates_for_month(self, period: MonthPeriod) -> list[TransactionTemplate]:
        """Templates dated inside the month plus every recurring template."""
        with store_errors(self.session, "list transactions"):
            stmt = (
                select(TransactionTemplate)
                .where(
                    or_(
                        and_(
                            TransactionTemplate.baseline_date >= period.start,
                            TransactionTemplate.baseline_date <= period.end,
                        ),
                        TransactionTemplate.recurrence != Recurrence.once,
                    )
                )
                .order_by(TransactionTemplate.id)
            )
            return list(self.session.scalars(stmt).all())

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        with store_errors(self.session, "load category"):
            category = self.session.get(Category, category_id)
        if not category:
            raise ValidationError("Category not found")

    def create(self, data: TemplateIn) -> TransactionTemplate:
        self._check_category(data.category_id)
        original_date = data.original_date
        if data.recurrence != Recurrence.once and original_date is None:
            original_date = data.baseline_date

        template = TransactionTemplate(
            type=data.type,
            description=data.description,
            amount_cents=data.amount_cents,
            category_id=data.category_id,
            baseline_date=data.baseline_date,
            original_date=original_date,
            recurrence=data.recurrence,
            date_placement=data.date_placement,
            custom_day=(
                data.custom_day
                if data.date_placement == DatePlacement.custom_day
                else None
            ),
            status=data.status,
            cleared=data.cleared,
        )
        with store_errors(self.session, "create transaction"):
            self.session.add(template)
            self.session.commit()
            self.session.refresh(template)
        logger.info(
            f"template_created: id={template.id} recurrence={template.recurrence.value}"
        )
        return template

    def update(self, template_id: int, data: TemplateUpdate) -> TransactionTemplate:
        changes = data.changes()
        for field_name in NON_NULLABLE_FIELDS:
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(f"{field_name} cannot be null")

        template = self.get(template_id)
        if "category_id" in changes:
            self._check_category(changes["category_id"])

        recurrence = changes.get("recurrence", template.recurrence)
        date_placement = changes.get("date_placement", template.date_placement)
        custom_day = changes.get("custom_day", template.custom_day)
        try:
            check_placement(recurrence, date_placement, custom_day)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if date_placement != DatePlacement.custom_day:
            changes["custom_day"] = None

        turning_on = (
            template.recurrence == Recurrence.once and recurrence != Recurrence.once
        )
        if turning_on and changes.get("original_date") is None:
            changes["original_date"] = changes.get(
                "baseline_date", template.baseline_date
            )

        with store_errors(self.session, "update transaction"):
            for field_name, value in changes.items():
                setattr(template, field_name, value)
            self.session.commit()
            self.session.refresh(template)
        logger.info(
            f"template_updated: id={template.id} fields={sorted(changes.keys())}"
        )
        return template

    def delete(self, template_id: int) -> None:
        template = self.get(template_id)
        with store_errors(self.session, "delete transaction"):
            self.session.execute(
                delete(MonthlyStatusOverride).where(
                    MonthlyStatusOverride.template_id == template.id
                )
            )
            self.session.delete(template)
            self.session.commit()
        logger.info(f"template_deleted: id={template_id}")


class MonthlyStatusService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(
        self, template_id: int, year: int, month: int
    ) -> Optional[MonthlyStatusOverride]:
        validate_year_month(year, month)
        with store_errors(self.session, "load monthly status"):
            return self.session.get(MonthlyStatusOverride, (template_id, year, month))

    def for_month(
        self, year: int, month: int
    ) -> dict[OverrideKey, MonthlyStatusOverride]:
        validate_year_month(year, month)
        with store_errors(self.session, "load monthly statuses"):
            stmt = select(MonthlyStatusOverride).where(
                MonthlyStatusOverride.year == year,
                MonthlyStatusOverride.month == month,
            )
            return {o.key: o for o in self.session.scalars(stmt).all()}

    def _upsert_statement(self, values: dict[str, object]):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(MonthlyStatusOverride)
        elif dialect == "sqlite":
            stmt = sqlite_insert(MonthlyStatusOverride)
        else:
            raise StoreError(f"Unsupported database dialect: {dialect}")
        stmt = stmt.values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[
                MonthlyStatusOverride.template_id,
                MonthlyStatusOverride.year,
                MonthlyStatusOverride.month,
            ],
            set_={
                "status": stmt.excluded.status,
                "cleared": stmt.excluded.cleared,
                "updated_at": stmt.excluded.updated_at,
            },
        )

    def set_monthly_status(
        self,
        template_id: int,
        year: int,
        month: int,
        status: TransactionStatus,
        cleared: bool,
    ) -> MonthlyStatusOverride:
        validate_year_month(year, month)
        try:
            status = TransactionStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Invalid status: {status}") from exc
        TemplateService(self.session).get(template_id)

        now = datetime.utcnow()
        stmt = self._upsert_statement(
            {
                "template_id": template_id,
                "year": year,
                "month": month,
                "status": status,
                "cleared": bool(cleared),
                "created_at": now,
                "updated_at": now,
            }
        )
        with store_errors(self.session, "set monthly status"):
            self.session.execute(stmt)
            self.session.commit()
            override = self.session.get(
                MonthlyStatusOverride,
                (template_id, year, month),
                populate_existing=True,
            )
        logger.info(
            f"monthly_status_set: template_id={template_id} month={year}-{month:02d} "
            f"status={status.value} cleared={bool(cleared)}"
        )
        return override


class OccurrenceService:
    def __init__(self, session: Session, today: Optional[date] = None) -> None:
        self.session = session
        self.today = today

    def occurrences_for_month(self, year: int, month: int) -> list[Occurrence]:
        validate_year_month(year, month)
        period = MonthPeriod(year, month)
        today = self.today or local_today()

        templates = TemplateService(self.session).candidates_for_month(period)
        overrides = MonthlyStatusService(self.session).for_month(year, month)

        literal: list[Occurrence] = []
        for template in templates:
            if not period.contains(template.baseline_date):
                continue
            status, cleared = effective_status(
                template,
                overrides.get((template.id, year, month)),
                year,
                month,
                today=today,
            )
            literal.append(
                Occurrence.from_template(
                    template,
                    occurrence_date=template.baseline_date,
                    status=status,
                    cleared=cleared,
                    virtual=False,
                )
            )

        # The literal record stands in for the month it is dated in.
        covered = {occ.template_id for occ in literal}
        projected: list[Occurrence] = []
        for template in templates:
            if template.recurrence == Recurrence.once or template.id in covered:
                continue
            if not fires(template, year, month):
                continue
            status, cleared = effective_status(
                template,
                overrides.get((template.id, year, month)),
                year,
                month,
                today=today,
            )
            projected.append(
                Occurrence.from_template(
                    template,
                    occurrence_date=resolve_date(template, year, month),
                    status=status,
                    cleared=cleared,
                    virtual=True,
                )
            )

        logger.info(
            f"occurrences_for_month: month={year}-{month:02d} "
            f"literal={len(literal)} virtual={len(projected)}"
        )
        return sort_occurrences(literal + projected)


def sort_occurrences(occurrences: Sequence[Occurrence]) -> list[Occurrence]:
    """Most recent first; same-day entries in template id order."""
    return sorted(
        occurrences,
        key=lambda occ: (-occ.occurrence_date.toordinal(), occ.template_id),
    )


class SummaryService:
    def __init__(self, session: Session, today: Optional[date] = None) -> None:
        self.session = session
        self.today = today

    def summarize_month(self, year: int, month: int) -> MonthlySummary:
        occurrences = OccurrenceService(
            self.session, today=self.today
        ).occurrences_for_month(year, month)
        names = CategoryService(self.session).names_for(
            occ.category_id
            for occ in occurrences
            if occ.type == TransactionType.expense and occ.category_id is not None
        )
        return summarize(occurrences, names)
