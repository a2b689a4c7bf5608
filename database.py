from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def _sqlite_pragmas(*, wal: bool):
    def _on_connect(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL;")
        # Overrides rely on ON DELETE CASCADE.
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()

    return _on_connect


def enable_foreign_keys(eng: Engine, *, wal: bool = False) -> None:
    """Install the per-connection SQLite pragmas; other dialects need none."""
    if eng.dialect.name == "sqlite":
        event.listen(eng, "connect", _sqlite_pragmas(wal=wal))


def _create_engine() -> Engine:
    url = get_settings().database_url
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    eng = create_engine(url, connect_args=connect_args)
    enable_foreign_keys(eng, wal=True)
    return eng


engine = _create_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
