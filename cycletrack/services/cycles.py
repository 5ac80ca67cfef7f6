"""
Cycle creation and reconciliation.

A cycle is created from predicted dates (``planned``) and reconciled once the
user reports when ovulation actually happened (``reconciled``). Reconciliation
appends the actual cycle length to the user's history, which every later cycle
carries forward and measures itself against.
"""

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Sequence

from sqlmodel import Session

from cycletrack.db import models
from cycletrack.db.crud import cycle as cycle_crud
from cycletrack.db.crud import feedback as feedback_crud
from cycletrack.exceptions import ConflictError, NotFoundError, ValidationError
from cycletrack.utils import days_between, is_in_current_month, month_key, parse_date
from cycletrack.utils.calculator import (
    compute_cycle_dates,
    validate_flow_length,
    validate_ovulation_date,
)
from cycletrack.utils.config import Settings
from cycletrack.utils.dependencies import get_settings
from cycletrack.utils.stats import (
    adjust_prediction,
    apply_feedback,
    evaluate_irregularity,
)

logger = logging.getLogger(__name__)


def adjust_with_feedback(
    session: Session,
    user_id: str,
    prediction: int,
    settings: Settings | None = None,
) -> int:
    """Stretch a prediction by the accuracy ratings the user gave earlier cycles."""
    feedback = feedback_crud.find_feedback_by_user(session=session, user_id=user_id)
    return apply_feedback(feedback, prediction, settings)


def create_cycle(
    session: Session,
    user_id: str,
    start_date: date | str,
    flow_length: int,
    known_ovulation_date: date | str | None = None,
    today: date | None = None,
    settings: Settings | None = None,
) -> models.CycleResult:
    settings = settings or get_settings()
    start = parse_date(start_date)
    ovulation = parse_date(known_ovulation_date) if known_ovulation_date else None
    validate_flow_length(flow_length)

    if not is_in_current_month(start, today):
        raise ValidationError("Start date must be within the current month.")

    month = month_key(start)
    if cycle_crud.find_cycle_for_month(session, user_id, month):
        logger.warning("Cycle for %s already exists for user %s", month, user_id)
        raise ConflictError(cycle_crud.DUPLICATE_MONTH_DETAIL)

    schedule = compute_cycle_dates(flow_length, start, ovulation, settings)

    previous_cycles = cycle_crud.find_cycles_by_user(session, user_id)
    predicted = adjust_prediction(previous_cycles, schedule.total_days)
    predicted = adjust_with_feedback(session, user_id, predicted, settings)

    history = list(previous_cycles[-1].previous_cycle_lengths) if previous_cycles else []
    irregularity = evaluate_irregularity(history, predicted, settings)

    cycle = models.Cycle(
        user_id=user_id,
        start_date=start,
        flow_length=flow_length,
        ovulation_date=schedule.ovulation_date,
        predicted_cycle_length=predicted,
        previous_cycle_lengths=history,
        irregular_cycle=irregularity.irregular,
        next_cycle_start_date=schedule.next_cycle_start_date,
        month=month,
        status=models.CycleStatus.PLANNED,
    )
    cycle = cycle_crud.save_cycle(session, cycle)
    logger.info(
        "Created cycle %s for user %s starting %s (predicted %s days)",
        cycle.id,
        user_id,
        start,
        predicted,
    )
    return models.CycleResult(cycle=cycle, irregularity=irregularity, schedule=schedule)


def compute_actual_cycle_length(
    start_date: date, actual_ovulation_date: date, settings: Settings | None = None
) -> int:
    settings = settings or get_settings()
    next_start = actual_ovulation_date + timedelta(days=settings.RECONCILED_LUTEAL_DAYS)
    return days_between(start_date, next_start)


def reconcile_cycle(
    session: Session,
    user_id: str,
    actual_ovulation_date: date | str,
    actual_flow_length: int,
    settings: Settings | None = None,
) -> models.CycleResult:
    """
    Record the actual ovulation date and flow length against the user's most
    recent cycle, extend their cycle length history and re-check irregularity.
    """
    settings = settings or get_settings()
    ovulation = parse_date(actual_ovulation_date)
    validate_flow_length(actual_flow_length)

    cycle = cycle_crud.find_latest_cycle(session, user_id)
    if cycle is None:
        raise NotFoundError("No cycle data found for user.")
    if cycle.status == models.CycleStatus.RECONCILED:
        raise ValidationError("Cycle has already been reconciled.")
    if ovulation < cycle.start_date:
        raise ValidationError("Actual ovulation date cannot be before the start date.")
    validate_ovulation_date(cycle.start_date, actual_flow_length, ovulation)

    actual_length = compute_actual_cycle_length(cycle.start_date, ovulation, settings)
    history = [*cycle.previous_cycle_lengths, actual_length]
    irregularity = evaluate_irregularity(history, actual_length, settings)

    cycle.sqlmodel_update(
        {
            "flow_length": actual_flow_length,
            "actual_flow_length": actual_flow_length,
            "actual_ovulation_date": ovulation,
            "ovulation_date": ovulation,
            "next_cycle_start_date": ovulation
            + timedelta(days=settings.RECONCILED_LUTEAL_DAYS),
            "previous_cycle_lengths": history,
            "irregular_cycle": irregularity.irregular,
            "month": month_key(cycle.start_date),
            "status": models.CycleStatus.RECONCILED,
            "updated_at": datetime.now(UTC),
        }
    )
    cycle = cycle_crud.save_cycle(session, cycle)
    logger.info(
        "Reconciled cycle %s for user %s: %s days, irregular=%s",
        cycle.id,
        user_id,
        actual_length,
        irregularity.irregular,
    )
    return models.CycleResult(
        cycle=cycle, irregularity=irregularity, actual_cycle_length=actual_length
    )


def get_cycles_by_month(
    session: Session,
    user_id: str,
    year: int,
    month: int,
    settings: Settings | None = None,
) -> Sequence[models.Cycle]:
    settings = settings or get_settings()
    if not settings.MIN_YEAR <= year <= settings.MAX_YEAR:
        raise ValidationError("Invalid year")
    if not 1 <= month <= 12:
        raise ValidationError("Invalid month")
    return cycle_crud.get_cycles_by_month(session, user_id, f"{year}-{month}")


def get_cycles(session: Session, user_id: str) -> Sequence[models.Cycle]:
    return cycle_crud.find_cycles_by_user(session, user_id)


def get_cycle(session: Session, user_id: str, cycle_id: int) -> models.Cycle:
    cycle = cycle_crud.get_cycle(session, cycle_id=cycle_id, user_id=user_id)
    if cycle is None:
        raise NotFoundError("Cycle not found")
    return cycle


def delete_cycle(session: Session, user_id: str, cycle_id: int) -> models.Cycle:
    cycle = get_cycle(session, user_id, cycle_id)
    cycle_crud.delete_cycle(session, cycle)
    logger.info("Deleted cycle %s for user %s", cycle_id, user_id)
    return cycle


###
# Feedback
###
def submit_feedback(
    session: Session,
    user_id: str,
    cycle_id: int,
    accuracy: int,
    comments: str | None = None,
    settings: Settings | None = None,
) -> models.Feedback:
    settings = settings or get_settings()
    if not settings.MIN_FEEDBACK_ACCURACY <= accuracy <= settings.MAX_FEEDBACK_ACCURACY:
        raise ValidationError(
            f"Accuracy must be between {settings.MIN_FEEDBACK_ACCURACY} "
            f"and {settings.MAX_FEEDBACK_ACCURACY}."
        )
    get_cycle(session, user_id, cycle_id)
    return feedback_crud.create_feedback(
        session,
        models.CreateFeedback(
            user_id=user_id, cycle_id=cycle_id, accuracy=accuracy, comments=comments
        ),
    )


def get_feedback_for_cycle(
    session: Session, user_id: str, cycle_id: int
) -> Sequence[models.Feedback]:
    feedback = feedback_crud.find_feedback_for_cycle(session, cycle_id, user_id)
    if not feedback:
        raise NotFoundError("No feedback found for this cycle")
    return feedback
