from collections.abc import Generator
from functools import lru_cache

from sqlmodel import Session

from cycletrack.utils.config import Settings


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_session() -> Generator[Session]:
    # Imported here so settings can be read without touching the database
    from cycletrack.db.session import engine

    with Session(engine) as session:
        yield session
