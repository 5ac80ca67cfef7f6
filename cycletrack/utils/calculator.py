"""
Calendar arithmetic for a single cycle.

Given the first day of flow and the flow length, derive the period days, the
ovulation date (estimated unless the user already knows it), the ovulation and
unsafe windows and the start of the next cycle. Every offset comes from
Settings so policy changes never touch the arithmetic below.
"""

from dataclasses import dataclass
from datetime import date, timedelta

from cycletrack.db import models
from cycletrack.exceptions import InvalidOvulationDate, ValidationError
from cycletrack.utils import date_range, days_between, inclusive_range
from cycletrack.utils.config import Settings
from cycletrack.utils.dependencies import get_settings


@dataclass(frozen=True)
class KnownOvulation:
    """Ovulation date reported by the user."""

    ovulation_date: date


@dataclass(frozen=True)
class EstimatedOvulation:
    """No ovulation date known yet; estimate it from the flow length."""


Ovulation = KnownOvulation | EstimatedOvulation


def as_ovulation(value: Ovulation | date | None) -> Ovulation:
    if value is None:
        return EstimatedOvulation()
    if isinstance(value, date):
        return KnownOvulation(value)
    return value


def last_flow_day(start_date: date, flow_length: int) -> date:
    return start_date + timedelta(days=flow_length - 1)


def validate_flow_length(flow_length: int) -> None:
    if flow_length < 1:
        raise ValidationError("Flow length must be at least one day.")


def validate_ovulation_date(start_date: date, flow_length: int, ovulation: date) -> None:
    """Ovulation has to fall strictly after the last day of menstruation."""
    if ovulation <= last_flow_day(start_date, flow_length):
        raise InvalidOvulationDate()


def estimate_ovulation_date(
    start_date: date, flow_length: int, settings: Settings | None = None
) -> date:
    settings = settings or get_settings()
    return start_date + timedelta(
        days=flow_length + settings.OVULATION_ESTIMATE_OFFSET_DAYS
    )


def resolve_ovulation_date(
    start_date: date,
    flow_length: int,
    ovulation: Ovulation,
    settings: Settings | None = None,
) -> date:
    if isinstance(ovulation, KnownOvulation):
        validate_ovulation_date(start_date, flow_length, ovulation.ovulation_date)
        return ovulation.ovulation_date
    if isinstance(ovulation, EstimatedOvulation):
        return estimate_ovulation_date(start_date, flow_length, settings)
    raise TypeError(f"Unsupported ovulation value: {ovulation!r}")


def compute_total_days(
    start_date: date, ovulation_date: date, settings: Settings | None = None
) -> int:
    settings = settings or get_settings()
    next_start = ovulation_date + timedelta(days=settings.OVULATION_TO_NEXT_CYCLE_DAYS)
    return days_between(start_date, next_start)


def compute_ovulation_range(
    ovulation_date: date, last_period_day: date, settings: Settings | None = None
) -> list[date]:
    """
    Days either side of ovulation. The first day is dropped when it is the last
    day of menstruation so a period day is never reported as fertile.
    """
    settings = settings or get_settings()
    spread = timedelta(days=settings.OVULATION_RANGE_DAYS)
    days = inclusive_range(ovulation_date - spread, ovulation_date + spread)
    if days[0] == last_period_day:
        days = days[1:]
    return days


def compute_unsafe_days(
    ovulation_date: date, last_period_day: date, settings: Settings | None = None
) -> list[date]:
    """
    Conception risk window ending a few days after ovulation. The window starts
    up to UNSAFE_DAYS_BEFORE_OVULATION days before ovulation, shrinking until it
    no longer overlaps menstruation.
    """
    settings = settings or get_settings()
    end = ovulation_date + timedelta(days=settings.UNSAFE_DAYS_AFTER_OVULATION)
    start = ovulation_date
    for days_before in range(settings.UNSAFE_DAYS_BEFORE_OVULATION, -1, -1):
        candidate = ovulation_date - timedelta(days=days_before)
        if candidate > last_period_day:
            start = candidate
            break
    return inclusive_range(start, end)


def compute_cycle_dates(
    flow_length: int,
    start_date: date,
    ovulation: Ovulation | date | None = None,
    settings: Settings | None = None,
) -> models.CycleSchedule:
    """
    Build the full schedule for one cycle.

    Args:
        flow_length (int): Days of menstruation, at least one.
        start_date (date): First day of flow.
        ovulation (Ovulation | date | None): Known ovulation date, or None to
            estimate it.
        settings (Settings): Offsets to use, defaults to the app settings.
    Returns:
        models.CycleSchedule: The derived dates for the cycle.
    """
    settings = settings or get_settings()
    validate_flow_length(flow_length)
    ovulation = as_ovulation(ovulation)

    period_range = date_range(start_date, flow_length)
    last_period_day = period_range[-1]
    ovulation_date = resolve_ovulation_date(start_date, flow_length, ovulation, settings)
    total_days = compute_total_days(start_date, ovulation_date, settings)

    return models.CycleSchedule(
        total_days=total_days,
        period_range=period_range,
        ovulation_date=ovulation_date,
        ovulation_estimated=isinstance(ovulation, EstimatedOvulation),
        ovulation_range=compute_ovulation_range(ovulation_date, last_period_day, settings),
        unsafe_days=compute_unsafe_days(ovulation_date, last_period_day, settings),
        next_cycle_start_date=start_date + timedelta(days=total_days),
    )
