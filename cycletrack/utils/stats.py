from typing import Sequence

import pandas as pd

from cycletrack.db import models
from cycletrack.utils.config import Settings
from cycletrack.utils.dependencies import get_settings


###
# Irregularity
###
def lengths_to_series(lengths: Sequence[int]) -> pd.Series:
    return pd.Series(list(lengths), dtype="float64")


def compute_mean(lengths: pd.Series) -> float | None:
    if lengths.empty:
        return None
    return float(lengths.mean())


def compute_std_dev(lengths: pd.Series) -> float | None:
    """Population standard deviation of the cycle lengths."""
    if lengths.empty:
        return None
    return float(lengths.std(ddof=0))


def compute_dynamic_threshold(
    lengths: pd.Series, settings: Settings | None = None
) -> float:
    """
    How far a cycle may stray from the mean before it counts as irregular.
    A history of identical lengths has no spread, so fall back to a fixed band.
    """
    settings = settings or get_settings()
    std_dev = compute_std_dev(lengths)
    if std_dev is None or std_dev <= 0:
        return float(settings.DEFAULT_IRREGULAR_THRESHOLD)
    return std_dev * settings.IRREGULAR_STD_MULTIPLIER


def evaluate_irregularity(
    previous_lengths: Sequence[int],
    candidate_length: int,
    settings: Settings | None = None,
) -> models.IrregularityReport:
    """
    Compare a cycle length against the user's history. A first cycle has nothing
    to compare against and is never flagged.
    """
    settings = settings or get_settings()
    lengths = lengths_to_series(previous_lengths)
    threshold = compute_dynamic_threshold(lengths, settings)
    mean = compute_mean(lengths)
    if mean is None:
        return models.IrregularityReport(threshold=threshold, irregular=False)
    return models.IrregularityReport(
        mean=mean,
        std_dev=compute_std_dev(lengths),
        threshold=threshold,
        irregular=bool(abs(candidate_length - mean) > threshold),
    )


###
# Prediction adjustment
###
def adjust_prediction(previous_cycles: Sequence[models.Cycle], raw_prediction: int) -> int:
    """
    Blend a freshly calculated cycle length with the average of earlier
    predictions, weighting both equally.
    """
    if not previous_cycles:
        return raw_prediction
    history = lengths_to_series([c.predicted_cycle_length for c in previous_cycles])
    return int(round((raw_prediction + history.mean()) / 2))


def compute_average_accuracy(feedback: Sequence[models.Feedback]) -> float | None:
    if not feedback:
        return None
    return float(pd.Series([f.accuracy for f in feedback], dtype="float64").mean())


def apply_feedback(
    feedback: Sequence[models.Feedback],
    prediction: int,
    settings: Settings | None = None,
) -> int:
    """
    Stretch a prediction by how inaccurate users have rated earlier predictions.
    Perfect ratings leave it untouched; all-lowest ratings add 80%.
    """
    settings = settings or get_settings()
    average_accuracy = compute_average_accuracy(feedback)
    if average_accuracy is None:
        return prediction
    top = settings.MAX_FEEDBACK_ACCURACY
    adjustment_factor = (top - average_accuracy) / top
    return int(round(prediction * (1 + adjustment_factor)))

