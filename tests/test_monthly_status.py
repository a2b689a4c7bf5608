from datetime import date

import pytest
from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session

from database import Base, enable_foreign_keys
from errors import NotFoundError, ValidationError
from models import (
    MonthlyStatusOverride,
    Recurrence,
    TransactionStatus,
    TransactionTemplate,
)
from schemas import TemplateIn
from services import MonthlyStatusService, TemplateService


def _engine():
    engine = create_engine("sqlite:///:memory:")
    enable_foreign_keys(engine)
    Base.metadata.create_all(engine)
    return engine


def _rent(session: Session) -> TransactionTemplate:
    return TemplateService(session).create(
        TemplateIn(
            description="Rent",
            amount_cents=120_000,
            baseline_date=date(2024, 1, 1),
            recurrence=Recurrence.monthly,
        )
    )


def _override_count(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(MonthlyStatusOverride))


def test_set_monthly_status_is_an_upsert():
    with Session(_engine()) as session:
        rent = _rent(session)
        statuses = MonthlyStatusService(session)

        first = statuses.set_monthly_status(
            rent.id, 2024, 6, TransactionStatus.paid, True
        )
        assert first.status == TransactionStatus.paid
        assert first.cleared is True

        second = statuses.set_monthly_status(
            rent.id, 2024, 6, TransactionStatus.pending, False
        )
        assert second.status == TransactionStatus.pending
        assert second.cleared is False
        assert _override_count(session) == 1

        stored = statuses.get(rent.id, 2024, 6)
        assert stored.status == TransactionStatus.pending


def test_repeating_the_same_status_keeps_one_row():
    with Session(_engine()) as session:
        rent = _rent(session)
        statuses = MonthlyStatusService(session)
        statuses.set_monthly_status(rent.id, 2024, 6, TransactionStatus.paid, True)
        statuses.set_monthly_status(rent.id, 2024, 6, TransactionStatus.paid, True)
        assert _override_count(session) == 1


def test_overrides_are_scoped_per_month():
    with Session(_engine()) as session:
        rent = _rent(session)
        statuses = MonthlyStatusService(session)
        statuses.set_monthly_status(rent.id, 2024, 6, TransactionStatus.paid, False)
        statuses.set_monthly_status(rent.id, 2024, 7, TransactionStatus.cleared, True)

        june = statuses.for_month(2024, 6)
        assert list(june.keys()) == [(rent.id, 2024, 6)]
        assert statuses.get(rent.id, 2024, 8) is None


def test_unknown_template_is_not_found():
    with Session(_engine()) as session:
        with pytest.raises(NotFoundError):
            MonthlyStatusService(session).set_monthly_status(
                999, 2024, 6, TransactionStatus.paid, True
            )
        assert _override_count(session) == 0


def test_invalid_month_is_rejected():
    with Session(_engine()) as session:
        rent = _rent(session)
        with pytest.raises(ValidationError):
            MonthlyStatusService(session).set_monthly_status(
                rent.id, 2024, 13, TransactionStatus.paid, True
            )
        with pytest.raises(ValidationError):
            MonthlyStatusService(session).set_monthly_status(
                rent.id, 2024, 6, "settled", True
            )


def test_deleting_template_removes_its_overrides():
    with Session(_engine()) as session:
        rent = _rent(session)
        statuses = MonthlyStatusService(session)
        statuses.set_monthly_status(rent.id, 2024, 6, TransactionStatus.paid, True)
        statuses.set_monthly_status(rent.id, 2024, 7, TransactionStatus.paid, True)

        TemplateService(session).delete(rent.id)
        assert _override_count(session) == 0


def test_database_cascade_removes_overrides():
    with Session(_engine()) as session:
        rent = _rent(session)
        MonthlyStatusService(session).set_monthly_status(
            rent.id, 2024, 6, TransactionStatus.paid, True
        )
        session.execute(
            delete(TransactionTemplate).where(TransactionTemplate.id == rent.id)
        )
        session.commit()
        assert _override_count(session) == 0


def test_enable_foreign_keys_turns_on_sqlite_enforcement():
    engine = _engine()
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
