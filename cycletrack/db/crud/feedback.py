from typing import Sequence

from sqlmodel import Session, select

from cycletrack.db import models
from cycletrack.db.crud.base import commit_and_refresh, fetch_all


def create_feedback(session: Session, feedback: models.CreateFeedback) -> models.Feedback:
    db_feedback = models.Feedback.model_validate(feedback)
    return commit_and_refresh(session, db_feedback)


def find_feedback_by_user(session: Session, user_id: str) -> Sequence[models.Feedback]:
    return fetch_all(
        session, select(models.Feedback).where(models.Feedback.user_id == user_id)
    )


def find_feedback_for_cycle(
    session: Session, cycle_id: int, user_id: str | None = None
) -> Sequence[models.Feedback]:
    statement = select(models.Feedback).where(models.Feedback.cycle_id == cycle_id)
    if user_id:
        statement = statement.where(models.Feedback.user_id == user_id)
    return fetch_all(session, statement)
