import logging
from datetime import date, timedelta
from typing import Sequence

from sqlmodel import Session

from cycletrack.db import models
from cycletrack.db.crud import cycle as cycle_crud
from cycletrack.db.crud import pregnancy as pregnancy_crud
from cycletrack.exceptions import ConflictError, NotFoundError, ValidationError
from cycletrack.utils import parse_date
from cycletrack.utils.config import Settings
from cycletrack.utils.dependencies import get_settings

logger = logging.getLogger(__name__)


def calculate_edd(ovulation_date: date, settings: Settings | None = None) -> date:
    settings = settings or get_settings()
    return ovulation_date + timedelta(days=settings.PREGNANCY_DURATION_DAYS)


def calculate_fertile_window(
    ovulation_date: date, settings: Settings | None = None
) -> tuple[date, date]:
    settings = settings or get_settings()
    return (
        ovulation_date - timedelta(days=settings.FERTILE_DAYS_BEFORE_OVULATION),
        ovulation_date + timedelta(days=settings.FERTILE_DAYS_AFTER_OVULATION),
    )


def has_missed_period(cycle: models.Cycle, today: date | None = None) -> bool:
    """The next cycle was due before today and no flow has been reported since."""
    today = today or date.today()
    return cycle.next_cycle_start_date < today and cycle.actual_flow_length is None


def is_user_pregnant(
    session: Session, user_id: str, today: date | None = None
) -> models.PregnancyStatus:
    pregnancy = pregnancy_crud.get_active_pregnancy(session, user_id)
    if pregnancy:
        return models.PregnancyStatus(pregnant=True, pregnancy=pregnancy)

    latest = cycle_crud.find_latest_cycle(session, user_id)
    if latest and has_missed_period(latest, today):
        return models.PregnancyStatus(pregnant=True, cycle=latest)
    return models.PregnancyStatus(pregnant=False)


def infer_pregnancy(
    session: Session,
    user_id: str,
    manual_date: date | str | None = None,
    today: date | None = None,
    settings: Settings | None = None,
) -> models.PregnancyResult:
    """
    Record a pregnancy, either from an ovulation date the user supplies or from
    a missed period in their latest cycle.

    Args:
        session (Session): Database session.
        user_id (str): The ID of the user.
        manual_date (date | str | None): Ovulation date entered by the user.
        today (date | None): Reference date for the missed period check.
    Returns:
        models.PregnancyResult: The stored pregnancy and the cycle it came from.
    """
    settings = settings or get_settings()
    if pregnancy_crud.get_active_pregnancy(session, user_id):
        raise ConflictError(pregnancy_crud.ACTIVE_PREGNANCY_DETAIL)

    cycle: models.Cycle | None = None
    if manual_date:
        ovulation_date = parse_date(manual_date)
    else:
        status = is_user_pregnant(session, user_id, today)
        if status.cycle is None:
            if cycle_crud.find_latest_cycle(session, user_id) is None:
                raise NotFoundError("No cycle data found for user.")
            raise ValidationError(
                "Cannot record pregnancy as cycle data does not indicate a missed period."
            )
        cycle = status.cycle
        ovulation_date = cycle.actual_ovulation_date or cycle.ovulation_date
        if ovulation_date is None:  # pragma: no cover
            raise ValidationError("Latest cycle has no ovulation date.")

    fertile_start, fertile_end = calculate_fertile_window(ovulation_date, settings)
    pregnancy = pregnancy_crud.create_pregnancy(
        session,
        models.CreatePregnancy(
            user_id=user_id,
            last_ovulation_date=ovulation_date,
            edd=calculate_edd(ovulation_date, settings),
            fertile_start=fertile_start,
            fertile_end=fertile_end,
            manual_input=bool(manual_date),
        ),
    )
    logger.info("Recorded pregnancy %s for user %s", pregnancy.id, user_id)
    return models.PregnancyResult(pregnancy=pregnancy, cycle=cycle)


def get_pregnancies(session: Session, user_id: str) -> Sequence[models.Pregnancy]:
    pregnancies = pregnancy_crud.get_pregnancies(session, user_id)
    if not pregnancies:
        raise NotFoundError("No pregnancies found")
    return pregnancies


def end_pregnancy(session: Session, user_id: str) -> models.Pregnancy:
    pregnancy = pregnancy_crud.get_active_pregnancy(session, user_id)
    if pregnancy is None:
        raise NotFoundError("No active pregnancy found")
    return pregnancy_crud.update_pregnancy(session, pregnancy, {"is_active": False})


def delete_pregnancy(session: Session, user_id: str, pregnancy_id: int) -> None:
    pregnancy = pregnancy_crud.get_pregnancy(session, pregnancy_id, user_id)
    if pregnancy is None:
        raise NotFoundError("Pregnancy not found")
    pregnancy_crud.delete_pregnancy(session, pregnancy)
    logger.info("Deleted pregnancy %s for user %s", pregnancy_id, user_id)
