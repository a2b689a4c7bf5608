import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, session_scope
from errors import NotFoundError, StoreError, ValidationError
from models import TransactionType
from periods import MonthPeriod, resolve_month
from recurrence import local_today
from schemas import (
    CategoryIn,
    CategoryOut,
    MonthlyStatusIn,
    MonthlyStatusOut,
    MonthlySummaryOut,
    OccurrenceOut,
    TemplateIn,
    TemplateOut,
    TemplateUpdate,
)
from services import (
    CategoryService,
    MonthlyStatusService,
    OccurrenceService,
    SummaryService,
    TemplateService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Monthly Bills")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
):
    messages = []
    for error in exc.errors():
        location = ".".join(
            str(part) for part in error.get("loc", ()) if part != "body"
        )
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    logger.info(f"request_rejected: path={request.url.path} errors={len(messages)}")
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    if not settings.seed_default_categories:
        return
    with session_scope() as session:
        CategoryService(session).ensure_defaults()


def month_from_params(year: Optional[int], month: Optional[int]) -> MonthPeriod:
    try:
        return resolve_month(year, month, today=local_today())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    try:
        return CategoryService(db).list_all()
    except StoreError as exc:
        raise _http_error(exc) from exc


@app.get("/api/categories/{category_type}", response_model=list[CategoryOut])
def list_categories_by_type(category_type: str, db: Session = Depends(get_db)):
    try:
        txn_type = TransactionType(category_type)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Type must be 'expense' or 'income'"
        ) from exc
    try:
        return CategoryService(db).list_by_type(txn_type)
    except StoreError as exc:
        raise _http_error(exc) from exc


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).create(payload)
    except (ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.get("/api/transactions", response_model=list[TemplateOut])
def list_transactions(db: Session = Depends(get_db)):
    try:
        return TemplateService(db).list()
    except StoreError as exc:
        raise _http_error(exc) from exc


@app.get("/api/transactions/month", response_model=list[OccurrenceOut])
def transactions_for_current_month(
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
):
    period = month_from_params(year, month)
    return _occurrences(db, period)


@app.get("/api/transactions/month/{year}/{month}", response_model=list[OccurrenceOut])
def transactions_for_month(year: int, month: int, db: Session = Depends(get_db)):
    period = month_from_params(year, month)
    return _occurrences(db, period)


def _occurrences(db: Session, period: MonthPeriod):
    try:
        return OccurrenceService(db).occurrences_for_month(period.year, period.month)
    except (ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.get("/api/transactions/{template_id}", response_model=TemplateOut)
def get_transaction(template_id: int, db: Session = Depends(get_db)):
    try:
        return TemplateService(db).get(template_id)
    except (NotFoundError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.post("/api/transactions", response_model=TemplateOut, status_code=201)
def create_transaction(payload: TemplateIn, db: Session = Depends(get_db)):
    try:
        return TemplateService(db).create(payload)
    except (ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.patch("/api/transactions/{template_id}", response_model=TemplateOut)
def update_transaction(
    template_id: int, payload: TemplateUpdate, db: Session = Depends(get_db)
):
    try:
        return TemplateService(db).update(template_id, payload)
    except (NotFoundError, ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.delete("/api/transactions/{template_id}", status_code=204)
def delete_transaction(template_id: int, db: Session = Depends(get_db)):
    try:
        TemplateService(db).delete(template_id)
    except (NotFoundError, StoreError) as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/summary", response_model=MonthlySummaryOut)
def summary_for_current_month(
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
):
    period = month_from_params(year, month)
    return _summary(db, period)


@app.get("/api/summary/{year}/{month}", response_model=MonthlySummaryOut)
def summary_for_month(year: int, month: int, db: Session = Depends(get_db)):
    period = month_from_params(year, month)
    return _summary(db, period)


def _summary(db: Session, period: MonthPeriod):
    logger.info(f"summary_requested: month={period.year}-{period.month:02d}")
    try:
        return SummaryService(db).summarize_month(period.year, period.month)
    except (ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.put(
    "/api/transactions/{template_id}/monthly-status/{year}/{month}",
    response_model=MonthlyStatusOut,
)
def set_monthly_status(
    template_id: int,
    year: int,
    month: int,
    payload: MonthlyStatusIn,
    db: Session = Depends(get_db),
):
    try:
        return MonthlyStatusService(db).set_monthly_status(
            template_id, year, month, payload.status, payload.cleared
        )
    except (NotFoundError, ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc


@app.get(
    "/api/transactions/{template_id}/monthly-status/{year}/{month}",
    response_model=MonthlyStatusOut,
)
def get_monthly_status(
    template_id: int, year: int, month: int, db: Session = Depends(get_db)
):
    try:
        override = MonthlyStatusService(db).get(template_id, year, month)
    except (ValidationError, StoreError) as exc:
        raise _http_error(exc) from exc
    if override is None:
        raise HTTPException(status_code=404, detail="Monthly status not found")
    return override
