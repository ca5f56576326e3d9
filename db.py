from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlmodel import SQLModel, Session, create_engine

import config


def make_engine(url: str = config.DATABASE_URL, **kwargs):
    """Build an engine; SQLite needs cross-thread access under FastAPI."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=config.SQL_ECHO, **kwargs)


engine = make_engine()


def create_db_and_tables() -> None:
    """Create all tables in the database if they don't exist."""
    # models must be imported so their tables are registered on the metadata
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
