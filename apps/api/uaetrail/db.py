from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from uaetrail.core.config import settings


def _engine_for(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Writers queue on the database lock instead of failing immediately.
        return create_engine(
            url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(url, echo=settings.database_echo, pool_pre_ping=True)


engine = _engine_for(settings.database_url)

SessionLocal = sessionmaker(bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    from uaetrail.models import Base

    Base.metadata.create_all(bind=engine)
