import logging
import os
from pathlib import Path

import sqlalchemy.exc as exc
from dotenv import load_dotenv
from sqlalchemy import Engine
from sqlmodel import SQLModel, create_engine

from cycletrack.utils.config import settings

logger = logging.getLogger(__name__)

if os.environ.get("ENVIRONMENT") == "test":
    # Settings only read .env, so the test overrides are loaded by hand
    load_dotenv(Path(__file__).absolute().parents[2] / ".env.test", override=True)


def database_url(database: str | None = None) -> str:
    """SQLite URL for a database file relative to the working directory."""
    return f"sqlite:///./{database or os.environ.get('DATABASE', settings.DATABASE)}"


def build_engine(url: str) -> Engine:
    try:
        return create_engine(
            url,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )
    except exc.ArgumentError:
        logger.error("Could not create an engine for %s", url)
        raise


engine = build_engine(database_url())


def create_db_and_tables(bind: Engine | None = None) -> None:
    # Registers the cycle, feedback and pregnancy tables on SQLModel.metadata
    from cycletrack.db import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
