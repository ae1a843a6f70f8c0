"""Database engine, sessions and the unit-of-work boundary"""

from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from credit_engine.config import settings
from credit_engine.domain.exceptions import ConcurrentModificationError

# READ COMMITTED is the floor for balance mutations; row locks do the rest
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle_seconds,
    isolation_level="READ COMMITTED",
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Commit everything done inside the block, or nothing.

    Any exception rolls the session back before propagating; a version
    conflict detected at commit surfaces as ConcurrentModificationError.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrentModificationError("Concurrent update detected, operation rolled back") from e
    except BaseException:
        db.rollback()
        raise
