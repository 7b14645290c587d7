# tenantbook/db.py

import logging

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from .config import DATABASE_URL

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}  # required for SQLite + FastAPI
    # in-memory databases must share one connection or every session sees an empty schema
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# Engine = connection to the database
engine = create_engine(
    DATABASE_URL,
    echo=False,
    **_engine_options(DATABASE_URL),
)


def create_db_and_tables():
    from . import models  # noqa: F401 - registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(engine)
    logger.info(f"Database schema ready ({engine.dialect.name})")


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
