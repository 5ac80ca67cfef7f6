import enum
from datetime import UTC, date, datetime

from sqlalchemy import DateTime, Index, UniqueConstraint, text
from sqlmodel import JSON, Column, Field, Relationship, SQLModel


class UserOwned(SQLModel):
    # Supplied by the identity layer; there is no user table in this service
    user_id: str = Field(index=True)


###
# Cycle
###


class CycleStatus(str, enum.Enum):
    PLANNED = "planned"
    RECONCILED = "reconciled"


class CycleBase(UserOwned):
    # user_id
    start_date: date
    flow_length: int
    ovulation_date: date | None = None
    actual_ovulation_date: date | None = None
    actual_flow_length: int | None = None
    predicted_cycle_length: int
    previous_cycle_lengths: list[int] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    irregular_cycle: bool = False
    next_cycle_start_date: date
    month: str = Field(index=True)
    status: CycleStatus = Field(default=CycleStatus.PLANNED)


class Cycle(CycleBase, table=True):
    """
    Cycle model.

    This is the class representing the Cycle table in the database. A user may
    only have one cycle per calendar month, enforced by uq_cycle_user_id_month.

    - id
    - user_id
    - start_date
    - flow_length
    - ovulation_date
    - actual_ovulation_date
    - actual_flow_length
    - predicted_cycle_length
    - previous_cycle_lengths
    - irregular_cycle
    - next_cycle_start_date
    - month
    - status
    - created_at
    - updated_at
    """

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_cycle_user_id_month"),
    )

    id: int | None = Field(default=None, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    feedback: list["Feedback"] = Relationship(
        back_populates="cycle", cascade_delete=True
    )


###
# Feedback
###


class CreateFeedback(UserOwned):
    # user_id
    cycle_id: int = Field(foreign_key="cycle.id", index=True, ondelete="CASCADE")
    accuracy: int  # 1 (way off) to 5 (spot on)
    comments: str | None = None


class Feedback(CreateFeedback, table=True):
    """
    Feedback on how accurate a cycle prediction turned out to be.

    - id
    - user_id
    - cycle_id
    - accuracy
    - comments
    - created_at
    """

    id: int | None = Field(default=None, primary_key=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    cycle: Cycle | None = Relationship(back_populates="feedback")


###
# Pregnancy
###


class CreatePregnancy(UserOwned):
    # user_id
    last_ovulation_date: date
    edd: date
    fertile_start: date
    fertile_end: date
    manual_input: bool = False
    is_active: bool = True


class Pregnancy(CreatePregnancy, table=True):
    """
    Pregnancy model.

    - id
    - user_id
    - last_ovulation_date
    - edd
    - fertile_start
    - fertile_end
    - manual_input
    - is_active
    - recorded_at
    """

    # At most one active pregnancy per user
    __table_args__ = (
        Index(
            "uq_pregnancy_user_id_active",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True, index=True)
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


###
# Results
###


class CycleSchedule(SQLModel):
    total_days: int
    period_range: list[date]
    ovulation_date: date
    ovulation_estimated: bool
    ovulation_range: list[date]
    unsafe_days: list[date]
    next_cycle_start_date: date


class IrregularityReport(SQLModel):
    # mean and std_dev are None when there is no history to compare against
    mean: float | None = None
    std_dev: float | None = None
    threshold: float
    irregular: bool = False


class CycleResult(SQLModel):
    cycle: Cycle
    irregularity: IrregularityReport
    schedule: CycleSchedule | None = None  # set on creation
    actual_cycle_length: int | None = None  # set on reconciliation


class PregnancyStatus(SQLModel):
    pregnant: bool
    cycle: Cycle | None = None
    pregnancy: Pregnancy | None = None


class PregnancyResult(SQLModel):
    pregnancy: Pregnancy
    cycle: Cycle | None = None


###
# Metadata
###

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = SQLModel.metadata
metadata.naming_convention = NAMING_CONVENTION
