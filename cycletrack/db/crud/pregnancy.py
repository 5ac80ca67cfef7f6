from typing import Sequence

from sqlmodel import Session, desc, select

from cycletrack.db import models
from cycletrack.db.crud.base import (
    commit_and_refresh,
    delete_and_commit,
    fetch_all,
    fetch_first,
)

ACTIVE_PREGNANCY_DETAIL = "Active pregnancy already exists"


def create_pregnancy(
    session: Session, pregnancy: models.CreatePregnancy
) -> models.Pregnancy:
    db_pregnancy = models.Pregnancy.model_validate(pregnancy)
    return commit_and_refresh(
        session, db_pregnancy, conflict_detail=ACTIVE_PREGNANCY_DETAIL
    )


def get_active_pregnancy(session: Session, user_id: str) -> models.Pregnancy | None:
    return fetch_first(
        session,
        select(models.Pregnancy)
        .where(
            models.Pregnancy.user_id == user_id,
            models.Pregnancy.is_active == True,  # noqa: E712
        )
        .order_by(desc(models.Pregnancy.recorded_at)),
    )


def get_pregnancies(session: Session, user_id: str) -> Sequence[models.Pregnancy]:
    return fetch_all(
        session,
        select(models.Pregnancy)
        .where(models.Pregnancy.user_id == user_id)
        .order_by(desc(models.Pregnancy.recorded_at)),
    )


def get_pregnancy(
    session: Session, pregnancy_id: int, user_id: str
) -> models.Pregnancy | None:
    return fetch_first(
        session,
        select(models.Pregnancy).where(
            models.Pregnancy.id == pregnancy_id,
            models.Pregnancy.user_id == user_id,
        ),
    )


def update_pregnancy(
    session: Session, pregnancy: models.Pregnancy, data: dict
) -> models.Pregnancy:
    pregnancy.sqlmodel_update(data)
    return commit_and_refresh(session, pregnancy)


def delete_pregnancy(session: Session, pregnancy: models.Pregnancy) -> None:
    delete_and_commit(session, pregnancy)
