import logging
from datetime import date, timedelta

import numpy as np
from sqlmodel import Session

from cycletrack.db import models
from cycletrack.db.crud import cycle as cycle_crud
from cycletrack.db.session import create_db_and_tables, engine
from cycletrack.services.cycles import compute_actual_cycle_length, create_cycle
from cycletrack.utils import month_key
from cycletrack.utils.config import settings
from cycletrack.utils.stats import evaluate_irregularity

logger = logging.getLogger(__name__)

DEMO_USER = "demo-user"
DEMO_FLOW_LENGTH = 5


def create_cycle_history(
    session: Session, user_id: str, today: date, cycles: int = 6
) -> list[models.Cycle]:
    """
    Seed one reconciled cycle in each of the months before the current one, each
    carrying the cycle lengths of the ones before it.
    """
    # Seed for reproducible demo data
    rng = np.random.default_rng(42)
    first_of_month = today.replace(day=1)
    starts: list[date] = []
    month_start = first_of_month
    for offset in rng.integers(0, 5, size=cycles):
        month_start = (month_start - timedelta(days=1)).replace(day=1)
        starts.append(month_start + timedelta(days=int(offset)))
    starts.reverse()
    ends = [*starts[1:], first_of_month]

    history: list[int] = []
    db_cycles: list[models.Cycle] = []
    for start, end in zip(starts, ends):
        length = (end - start).days
        ovulation = start + timedelta(days=length - settings.RECONCILED_LUTEAL_DAYS)
        actual_length = compute_actual_cycle_length(start, ovulation)
        history = [*history, actual_length]
        report = evaluate_irregularity(history, actual_length)
        cycle = models.Cycle(
            user_id=user_id,
            start_date=start,
            flow_length=DEMO_FLOW_LENGTH,
            ovulation_date=ovulation,
            actual_ovulation_date=ovulation,
            actual_flow_length=DEMO_FLOW_LENGTH,
            predicted_cycle_length=actual_length,
            previous_cycle_lengths=history,
            irregular_cycle=report.irregular,
            next_cycle_start_date=ovulation
            + timedelta(days=settings.RECONCILED_LUTEAL_DAYS),
            month=month_key(start),
            status=models.CycleStatus.RECONCILED,
        )
        db_cycles.append(cycle_crud.save_cycle(session, cycle))
    return db_cycles


def init_demo_user(session: Session, today: date | None = None) -> None:
    today = today or date.today()
    if cycle_crud.find_latest_cycle(session, DEMO_USER):
        logger.info("Demo user already has cycles, skipping")
        return
    create_cycle_history(session, DEMO_USER, today)
    result = create_cycle(
        session,
        user_id=DEMO_USER,
        start_date=today.replace(day=1),
        flow_length=DEMO_FLOW_LENGTH,
        today=today,
    )
    logger.info(
        "Demo cycle predicts next start on %s", result.cycle.next_cycle_start_date
    )


def init() -> None:
    create_db_and_tables()
    with Session(engine) as session:
        init_demo_user(session)


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info("Creating initial data")
    init()
    logger.info("Initial data created")


if __name__ == "__main__":
    main()
