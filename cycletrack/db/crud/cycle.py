from typing import Sequence

from sqlmodel import Session, asc, desc, select
from sqlmodel.sql.expression import SelectOfScalar

from cycletrack.db import models
from cycletrack.db.crud.base import (
    commit_and_refresh,
    delete_and_commit,
    fetch_all,
    fetch_first,
)

DUPLICATE_MONTH_DETAIL = "A cycle already exists for this month"


def find_cycles_by_user(session: Session, user_id: str) -> Sequence[models.Cycle]:
    """All of a user's cycles, oldest first."""
    return fetch_all(
        session,
        select(models.Cycle)
        .where(models.Cycle.user_id == user_id)
        .order_by(asc(models.Cycle.start_date)),
    )


def _select_month(user_id: str, month: str) -> SelectOfScalar[models.Cycle]:
    return select(models.Cycle).where(
        models.Cycle.user_id == user_id,
        models.Cycle.month == month,
    )


def find_cycle_for_month(
    session: Session, user_id: str, month: str
) -> models.Cycle | None:
    return fetch_first(session, _select_month(user_id, month))


def get_cycles_by_month(
    session: Session, user_id: str, month: str
) -> Sequence[models.Cycle]:
    return fetch_all(session, _select_month(user_id, month))


def find_latest_cycle(session: Session, user_id: str) -> models.Cycle | None:
    return fetch_first(
        session,
        select(models.Cycle)
        .where(models.Cycle.user_id == user_id)
        .order_by(desc(models.Cycle.start_date)),
    )


def get_cycle(
    session: Session,
    cycle_id: int,
    user_id: str | None = None,
) -> models.Cycle | None:
    statement = select(models.Cycle).where(models.Cycle.id == cycle_id)
    if user_id is not None:
        statement = statement.where(models.Cycle.user_id == user_id)
    return fetch_first(session, statement)


def save_cycle(session: Session, cycle: models.Cycle) -> models.Cycle:
    return commit_and_refresh(session, cycle, conflict_detail=DUPLICATE_MONTH_DETAIL)


def delete_cycle(session: Session, cycle: models.Cycle) -> None:
    delete_and_commit(session, cycle)
