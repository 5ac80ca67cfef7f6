from datetime import date, timedelta

import pytest
from sqlmodel import Session

from cycletrack.db import models
from cycletrack.db.crud import cycle as cycle_crud
from cycletrack.db.crud import feedback as feedback_crud
from cycletrack.exceptions import (
    ConflictError,
    InvalidOvulationDate,
    NotFoundError,
    ValidationError,
)
from cycletrack.services import cycles
from tests.utils import random_user_id
from tests.utils.cycles import create_cycle_record, create_feedback_records


class TestCycleCreation:
    def test_create_first_cycle(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        result = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        cycle = result.cycle
        assert cycle.id is not None
        assert cycle.user_id == user_id
        assert cycle.start_date == date(2023, 11, 20)
        assert cycle.month == "2023-11"
        assert cycle.status == models.CycleStatus.PLANNED
        assert cycle.ovulation_date == date(2023, 12, 4)
        assert cycle.predicted_cycle_length == 29
        assert cycle.next_cycle_start_date == date(2023, 12, 19)
        assert cycle.previous_cycle_lengths == []
        assert not cycle.irregular_cycle
        assert result.schedule is not None
        assert result.schedule.total_days == 29
        assert len(result.schedule.unsafe_days) == 11
        assert result.irregularity.mean is None

    def test_create_with_known_ovulation(self, session: Session, today: date) -> None:
        result = cycles.create_cycle(
            session,
            random_user_id(),
            date(2023, 11, 20),
            4,
            known_ovulation_date="2023-12-03",
            today=today,
        )
        assert result.cycle.ovulation_date == date(2023, 12, 3)
        assert result.cycle.predicted_cycle_length == 28
        assert result.cycle.next_cycle_start_date == date(2023, 12, 18)

    def test_invalid_known_ovulation(self, session: Session, today: date) -> None:
        with pytest.raises(InvalidOvulationDate):
            cycles.create_cycle(
                session,
                random_user_id(),
                "2023-11-20",
                5,
                known_ovulation_date="2023-11-24",
                today=today,
            )

    @pytest.mark.parametrize("start_date", ["2023-10-31", "2023-12-01", "2022-11-20"])
    def test_start_date_outside_current_month(
        self, session: Session, today: date, start_date: str
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            cycles.create_cycle(session, random_user_id(), start_date, 5, today=today)
        assert exc_info.value.detail == "Start date must be within the current month."

    def test_invalid_flow_length(self, session: Session, today: date) -> None:
        with pytest.raises(ValidationError):
            cycles.create_cycle(session, random_user_id(), "2023-11-20", 0, today=today)
        assert cycle_crud.find_cycles_by_user(session, "any") == []

    def test_blends_history_and_feedback(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        previous = create_cycle_record(
            session,
            user_id,
            date(2023, 10, 1),
            predicted_cycle_length=31,
            previous_cycle_lengths=[28, 28, 28],
        )
        # Estimated schedule is 29 days, blended with 31 gives 30
        result = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert result.cycle.predicted_cycle_length == 30
        assert result.cycle.previous_cycle_lengths == [28, 28, 28]
        assert not result.cycle.irregular_cycle

        cycles.delete_cycle(session, user_id, result.cycle.id)
        create_feedback_records(session, previous, [3])
        # Average accuracy 3 stretches 30 by 40%, far outside the flat history
        result = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert result.cycle.predicted_cycle_length == 42
        assert result.cycle.irregular_cycle
        assert result.irregularity.threshold == 7


class TestOneCyclePerMonth:
    def test_second_cycle_in_month_conflicts(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-02", 5, today=today)
        with pytest.raises(ConflictError) as exc_info:
            cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert exc_info.value.status_code == 409
        assert len(cycle_crud.find_cycles_by_user(session, user_id)) == 1

    def test_other_users_are_independent(self, session: Session, today: date) -> None:
        cycles.create_cycle(session, random_user_id(), "2023-11-02", 5, today=today)
        result = cycles.create_cycle(session, random_user_id(), "2023-11-02", 5, today=today)
        assert result.cycle.id is not None

    def test_constraint_catches_missed_duplicate(
        self, session: Session, today: date, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Simulate a concurrent request slipping past the lookup
        monkeypatch.setattr(cycle_crud, "find_cycle_for_month", lambda *args: None)
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-02", 5, today=today)
        with pytest.raises(ConflictError) as exc_info:
            cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert exc_info.value.detail == cycle_crud.DUPLICATE_MONTH_DETAIL
        assert len(cycle_crud.find_cycles_by_user(session, user_id)) == 1


class TestCycleReconciliation:
    def test_reconcile_latest_cycle(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        created = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        result = cycles.reconcile_cycle(session, user_id, "2023-12-04", 4)
        assert result.actual_cycle_length == 28
        cycle = result.cycle
        assert cycle.id == created.cycle.id
        assert cycle.status == models.CycleStatus.RECONCILED
        assert cycle.actual_ovulation_date == date(2023, 12, 4)
        assert cycle.actual_flow_length == 4
        assert cycle.flow_length == 4
        assert cycle.next_cycle_start_date == date(2023, 12, 18)
        assert cycle.month == "2023-11"
        assert cycle.updated_at is not None
        assert not result.irregularity.irregular

    def test_confirmed_ovulation_replaces_estimate(
        self, session: Session, today: date
    ) -> None:
        user_id = random_user_id()
        created = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert created.cycle.ovulation_date == date(2023, 12, 4)
        # A 15 day flow ends on the day the estimate fell on
        result = cycles.reconcile_cycle(session, user_id, "2023-12-06", 15)
        session.expire_all()
        stored = cycle_crud.get_cycle(session, result.cycle.id)
        assert stored is not None
        last_flow_day = stored.start_date + timedelta(days=stored.flow_length - 1)
        assert stored.ovulation_date == date(2023, 12, 6)
        assert stored.ovulation_date > last_flow_day

    def test_history_gains_exactly_one_entry(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        create_cycle_record(
            session,
            user_id,
            date(2023, 10, 1),
            reconciled=True,
            previous_cycle_lengths=[27, 28, 29],
        )
        created = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        assert created.cycle.previous_cycle_lengths == [27, 28, 29]

        result = cycles.reconcile_cycle(session, user_id, date(2023, 12, 5), 5)
        session.expire_all()
        stored = cycle_crud.get_cycle(session, created.cycle.id)
        assert stored is not None
        assert stored.previous_cycle_lengths == [27, 28, 29, result.actual_cycle_length]
        assert result.actual_cycle_length == 29

    def test_irregular_actual_length(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        create_cycle_record(
            session,
            user_id,
            date(2023, 10, 1),
            reconciled=True,
            previous_cycle_lengths=[28, 28, 28],
        )
        cycles.create_cycle(session, user_id, "2023-11-01", 5, today=today)
        # 2023-12-06 + 14 days is 49 days after the start
        result = cycles.reconcile_cycle(session, user_id, "2023-12-06", 5)
        assert result.actual_cycle_length == 49
        assert result.irregularity.irregular
        assert result.cycle.irregular_cycle

    def test_no_cycle(self, session: Session) -> None:
        with pytest.raises(NotFoundError):
            cycles.reconcile_cycle(session, random_user_id(), "2023-12-04", 4)

    def test_ovulation_before_start(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        with pytest.raises(ValidationError) as exc_info:
            cycles.reconcile_cycle(session, user_id, "2023-11-19", 5)
        assert "before the start date" in exc_info.value.detail

    def test_ovulation_during_flow(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        with pytest.raises(InvalidOvulationDate):
            cycles.reconcile_cycle(session, user_id, "2023-11-22", 5)

    def test_invalid_flow_length(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        with pytest.raises(ValidationError):
            cycles.reconcile_cycle(session, user_id, "2023-12-04", 0)

    def test_cannot_reconcile_twice(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        cycles.reconcile_cycle(session, user_id, "2023-12-04", 5)
        with pytest.raises(ValidationError):
            cycles.reconcile_cycle(session, user_id, "2023-12-05", 5)
        cycle = cycle_crud.find_latest_cycle(session, user_id)
        assert cycle is not None
        assert cycle.previous_cycle_lengths == [28]


class TestCycleRetrieval:
    def test_get_cycles_by_month(self, session: Session, today: date) -> None:
        user_id = random_user_id()
        create_cycle_record(session, user_id, date(2023, 10, 3))
        created = cycles.create_cycle(session, user_id, "2023-11-20", 5, today=today)
        found = cycles.get_cycles_by_month(session, user_id, 2023, 11)
        assert [c.id for c in found] == [created.cycle.id]
        assert cycles.get_cycles_by_month(session, user_id, 2023, 9) == []
        assert cycles.get_cycles_by_month(session, random_user_id(), 2023, 11) == []

    @pytest.mark.parametrize("year,month", [(2023, 0), (2023, 13), (1800, 5), (2200, 5)])
    def test_get_cycles_by_invalid_month(
        self, session: Session, year: int, month: int
    ) -> None:
        with pytest.raises(ValidationError):
            cycles.get_cycles_by_month(session, random_user_id(), year, month)

    def test_get_cycles_oldest_first(self, session: Session) -> None:
        user_id = random_user_id()
        create_cycle_record(session, user_id, date(2023, 10, 3))
        create_cycle_record(session, user_id, date(2023, 8, 3))
        create_cycle_record(session, user_id, date(2023, 9, 3))
        months = [c.month for c in cycles.get_cycles(session, user_id)]
        assert months == ["2023-8", "2023-9", "2023-10"]

    def test_get_cycle(self, session: Session) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 3))
        assert cycles.get_cycle(session, user_id, record.id).id == record.id
        # Cycles belonging to another user are hidden
        with pytest.raises(NotFoundError):
            cycles.get_cycle(session, random_user_id(), record.id)

    def test_delete_cycle(self, session: Session) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 3))
        create_feedback_records(session, record, [4, 5])
        cycles.delete_cycle(session, user_id, record.id)
        assert cycles.get_cycles(session, user_id) == []
        assert feedback_crud.find_feedback_by_user(session, user_id) == []
        with pytest.raises(NotFoundError):
            cycles.delete_cycle(session, user_id, record.id)


class TestFeedback:
    def test_submit_feedback(self, session: Session) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 3))
        feedback = cycles.submit_feedback(
            session, user_id, record.id, 4, comments="Off by a day"
        )
        assert feedback.id is not None
        assert feedback.cycle_id == record.id
        assert feedback.created_at is not None
        stored = cycles.get_feedback_for_cycle(session, user_id, record.id)
        assert [f.comments for f in stored] == ["Off by a day"]

    @pytest.mark.parametrize("accuracy", [0, 6])
    def test_accuracy_out_of_range(self, session: Session, accuracy: int) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 3))
        with pytest.raises(ValidationError):
            cycles.submit_feedback(session, user_id, record.id, accuracy)

    def test_feedback_for_unknown_cycle(self, session: Session) -> None:
        with pytest.raises(NotFoundError):
            cycles.submit_feedback(session, random_user_id(), 9999, 3)

    def test_no_feedback_for_cycle(self, session: Session) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 3))
        with pytest.raises(NotFoundError):
            cycles.get_feedback_for_cycle(session, user_id, record.id)

    def test_adjust_with_stored_feedback(self, session: Session) -> None:
        user_id = random_user_id()
        record = create_cycle_record(session, user_id, date(2023, 10, 1))
        create_feedback_records(session, record, [3, 3])
        assert cycles.adjust_with_feedback(session, user_id, 30) == 42
        # Another user's feedback does not leak in
        assert cycles.adjust_with_feedback(session, random_user_id(), 30) == 30
