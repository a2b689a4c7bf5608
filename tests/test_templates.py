from datetime import date

import pytest
from pydantic import ValidationError as PayloadError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, ValidationError
from models import DatePlacement, Recurrence, TransactionStatus, TransactionType
from schemas import CategoryIn, TemplateIn, TemplateUpdate
from services import CategoryService, TemplateService


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_recurring_template_gets_original_date_from_baseline():
    with Session(_engine()) as session:
        template = TemplateService(session).create(
            TemplateIn(
                description="Rent",
                amount_cents=120_000,
                baseline_date=date(2024, 1, 31),
                recurrence=Recurrence.monthly,
            )
        )
        assert template.original_date == date(2024, 1, 31)
        assert template.status == TransactionStatus.pending
        assert template.cleared is False


def test_one_time_template_has_no_original_date():
    with Session(_engine()) as session:
        template = TemplateService(session).create(
            TemplateIn(
                type=TransactionType.income,
                description="Bonus",
                amount_cents=50_000,
                baseline_date=date(2024, 3, 1),
            )
        )
        assert template.original_date is None
        assert template.recurrence == Recurrence.once


def test_payload_rejects_invalid_templates():
    with pytest.raises(PayloadError):
        TemplateIn(description="Zero", amount_cents=0, baseline_date=date(2024, 1, 1))
    with pytest.raises(PayloadError):
        TemplateIn(
            description="Relative once",
            amount_cents=100,
            baseline_date=date(2024, 1, 1),
            date_placement=DatePlacement.last_of_month,
        )
    with pytest.raises(PayloadError):
        TemplateIn(
            description="Missing day",
            amount_cents=100,
            baseline_date=date(2024, 1, 1),
            recurrence=Recurrence.monthly,
            date_placement=DatePlacement.custom_day,
        )
    with pytest.raises(PayloadError):
        TemplateIn(
            description="Day 32",
            amount_cents=100,
            baseline_date=date(2024, 1, 1),
            recurrence=Recurrence.monthly,
            date_placement=DatePlacement.custom_day,
            custom_day=32,
        )


def test_unknown_category_is_rejected():
    with Session(_engine()) as session:
        with pytest.raises(ValidationError):
            TemplateService(session).create(
                TemplateIn(
                    description="Power",
                    amount_cents=8_000,
                    category_id=99,
                    baseline_date=date(2024, 1, 1),
                )
            )


def test_partial_update_keeps_untouched_fields():
    with Session(_engine()) as session:
        utilities = CategoryService(session).create(
            CategoryIn(name="Utilities", type=TransactionType.expense)
        )
        service = TemplateService(session)
        template = service.create(
            TemplateIn(
                description="Power",
                amount_cents=8_000,
                category_id=utilities.id,
                baseline_date=date(2024, 1, 12),
                recurrence=Recurrence.monthly,
            )
        )
        updated = service.update(template.id, TemplateUpdate(amount_cents=9_500))
        assert updated.amount_cents == 9_500
        assert updated.description == "Power"
        assert updated.category_id == utilities.id
        assert updated.recurrence == Recurrence.monthly


def test_moving_baseline_does_not_move_anchor():
    with Session(_engine()) as session:
        service = TemplateService(session)
        template = service.create(
            TemplateIn(
                description="Gym",
                amount_cents=3_000,
                baseline_date=date(2024, 1, 5),
                recurrence=Recurrence.monthly,
            )
        )
        updated = service.update(
            template.id, TemplateUpdate(baseline_date=date(2024, 2, 9))
        )
        assert updated.baseline_date == date(2024, 2, 9)
        assert updated.original_date == date(2024, 1, 5)


def test_turning_recurrence_on_sets_anchor():
    with Session(_engine()) as session:
        service = TemplateService(session)
        template = service.create(
            TemplateIn(
                description="Phone",
                amount_cents=2_500,
                baseline_date=date(2024, 4, 18),
            )
        )
        updated = service.update(
            template.id, TemplateUpdate(recurrence=Recurrence.monthly)
        )
        assert updated.original_date == date(2024, 4, 18)


def test_update_validates_merged_placement():
    with Session(_engine()) as session:
        service = TemplateService(session)
        template = service.create(
            TemplateIn(
                description="Insurance",
                amount_cents=4_000,
                baseline_date=date(2024, 1, 1),
            )
        )
        with pytest.raises(ValidationError):
            service.update(
                template.id,
                TemplateUpdate(date_placement=DatePlacement.first_of_month),
            )
        with pytest.raises(ValidationError):
            service.update(
                template.id,
                TemplateUpdate(
                    recurrence=Recurrence.monthly,
                    date_placement=DatePlacement.custom_day,
                ),
            )
        with pytest.raises(ValidationError):
            service.update(template.id, TemplateUpdate(description=None))


def test_leaving_custom_day_placement_clears_custom_day():
    with Session(_engine()) as session:
        service = TemplateService(session)
        template = service.create(
            TemplateIn(
                description="Loan",
                amount_cents=30_000,
                baseline_date=date(2024, 1, 1),
                recurrence=Recurrence.monthly,
                date_placement=DatePlacement.custom_day,
                custom_day=25,
            )
        )
        assert template.custom_day == 25
        updated = service.update(
            template.id,
            TemplateUpdate(date_placement=DatePlacement.last_of_month),
        )
        assert updated.custom_day is None


def test_unknown_template_raises_not_found():
    with Session(_engine()) as session:
        service = TemplateService(session)
        with pytest.raises(NotFoundError):
            service.get(42)
        with pytest.raises(NotFoundError):
            service.update(42, TemplateUpdate(amount_cents=100))
        with pytest.raises(NotFoundError):
            service.delete(42)


def test_default_categories_seeded_once():
    with Session(_engine()) as session:
        categories = CategoryService(session)
        assert categories.ensure_defaults() == 20
        assert categories.ensure_defaults() == 0
        names = [c.name for c in categories.list_by_type(TransactionType.income)]
        assert names == ["Salary", "Investments", "Interest", "Bonus", "Other Income"]


def test_duplicate_category_name_is_rejected():
    with Session(_engine()) as session:
        categories = CategoryService(session)
        categories.create(CategoryIn(name="Pets", type=TransactionType.expense))
        with pytest.raises(ValidationError):
            categories.create(CategoryIn(name="Pets", type=TransactionType.expense))
