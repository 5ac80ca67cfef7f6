import os
from collections.abc import Generator
from datetime import date

import pytest
from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

os.environ.setdefault("ENVIRONMENT", "test")

from cycletrack.db import models  # noqa: E402,F401
from cycletrack.utils.config import Settings  # noqa: E402

# function: the default scope, the fixture is destroyed at the end of the test.
# module: the fixture is destroyed during teardown of the last test in the module.
# session: the fixture is destroyed at the end of the test session.


@pytest.fixture(scope="module")
def settings() -> Settings:
    return Settings()


@pytest.fixture
def engine() -> Generator[Engine]:
    # A single shared in-memory connection, rebuilt for every test
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Generator[Session]:
    with Session(engine) as db_session:
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise
        finally:
            db_session.close()


@pytest.fixture
def today() -> date:
    return date(2023, 11, 22)
