# database.py

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from geoaccess.core.config import DATABASE_URL
from geoaccess.core.errors import Conflict, ServiceUnavailable

SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"


def engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


engine = create_engine(DATABASE_URL, echo=False, **engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _sqlstate(err: DBAPIError):
    orig = err.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


@contextmanager
def translate_store_errors() -> Iterator[None]:
    """Surface store failures as Conflict or ServiceUnavailable."""
    try:
        yield
    except IntegrityError as e:
        raise Conflict("Conflicting concurrent change", details={"constraint": type(e.orig).__name__}) from e
    except (OperationalError, InterfaceError) as e:
        if _sqlstate(e) in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
            raise Conflict("Concurrent update, retry the operation") from e
        raise ServiceUnavailable() from e


@contextmanager
def unit_of_work(db: Session, serializable: bool = False) -> Iterator[Session]:
    """
    One atomic transaction: everything flushed inside the block, including
    audit rows, commits together or not at all.
    """
    with translate_store_errors():
        if serializable and db.in_transaction() and not (db.new or db.dirty or db.deleted):
            # close the read-only transaction left by credential lookups so
            # the isolation level applies from the first statement
            db.commit()
        if not db.in_transaction():
            if serializable:
                db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            else:
                db.begin()
        try:
            yield db
            db.commit()
        except BaseException:
            db.rollback()
            raise
