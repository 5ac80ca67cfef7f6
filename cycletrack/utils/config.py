import warnings
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    APP_NAME: str = "Cycle Tracker Core"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["local", "test", "production"] = "local"
    DATABASE: str = "cycles.db"
    LOG_LEVEL: str = "INFO"
    # Constants for cycle date calculation
    OVULATION_ESTIMATE_OFFSET_DAYS: int = 9  # counted from start_date + flow_length
    OVULATION_TO_NEXT_CYCLE_DAYS: int = 15
    RECONCILED_LUTEAL_DAYS: int = 14
    OVULATION_RANGE_DAYS: int = 1
    UNSAFE_DAYS_BEFORE_OVULATION: int = 5
    UNSAFE_DAYS_AFTER_OVULATION: int = 5
    # Constants for irregularity detection
    IRREGULAR_STD_MULTIPLIER: float = 1.5
    DEFAULT_IRREGULAR_THRESHOLD: float = 7
    # Constants for feedback adjustment
    MIN_FEEDBACK_ACCURACY: int = 1
    MAX_FEEDBACK_ACCURACY: int = 5
    # Constants for pregnancy inference
    PREGNANCY_DURATION_DAYS: int = 280
    FERTILE_DAYS_BEFORE_OVULATION: int = 5
    FERTILE_DAYS_AFTER_OVULATION: int = 1
    # Accepted range for month lookups
    MIN_YEAR: int = 1900
    MAX_YEAR: int = 2100

    @model_validator(mode="after")
    def _check_offsets(self) -> Self:
        if self.MIN_FEEDBACK_ACCURACY >= self.MAX_FEEDBACK_ACCURACY:
            raise ValueError("MIN_FEEDBACK_ACCURACY must be below MAX_FEEDBACK_ACCURACY")
        if self.OVULATION_TO_NEXT_CYCLE_DAYS < 1 or self.RECONCILED_LUTEAL_DAYS < 1:
            message = "Ovulation to next cycle offsets must be at least one day"
            if self.ENVIRONMENT == "production":
                raise ValueError(message)
            warnings.warn(message, stacklevel=1)
        return self


settings = Settings()
