from __future__ import annotations

import datetime

from .math_tools import MathTools


class EnergyEstimator:
    """MET based calorie estimate for a finished lifting session."""

    MET_FLOOR: float = 3.0
    MET_CEILING: float = 8.0
    DEFAULT_DURATION_MINUTES: int = 60
    DEFAULT_BODY_WEIGHT: float = 75.0
    IDLE_INTENSITY: float = 1.0

    @classmethod
    def duration_minutes(
        cls,
        start: datetime.datetime | None,
        end: datetime.datetime,
        default: int | None = None,
    ) -> int:
        """Whole minutes between ``start`` and ``end``; default when unstarted."""
        if start is None:
            return cls.DEFAULT_DURATION_MINUTES if default is None else default
        minutes = MathTools.truncate((end - start).total_seconds() / 60)
        return max(minutes, 0)

    @classmethod
    def intensity_factor(cls, volume: float, duration_minutes: float) -> float:
        if duration_minutes <= 0:
            return cls.IDLE_INTENSITY
        return MathTools.session_density(volume, duration_minutes) / 100.0

    @classmethod
    def met(cls, volume: float, duration_minutes: float) -> float:
        return MathTools.clamp(
            cls.MET_FLOOR + cls.intensity_factor(volume, duration_minutes),
            cls.MET_FLOOR,
            cls.MET_CEILING,
        )

    @classmethod
    def calories_for_duration(
        cls, duration_minutes: float, volume: float, body_weight: float | None
    ) -> int:
        weight = cls.DEFAULT_BODY_WEIGHT if body_weight is None else body_weight
        met = cls.met(volume, duration_minutes)
        return MathTools.truncate(met * weight * (duration_minutes / 60.0))

    @classmethod
    def calories(
        cls,
        start: datetime.datetime | None,
        end: datetime.datetime,
        volume: float,
        body_weight: float | None,
    ) -> int:
        """Return kcal burned between ``start`` and ``end``."""
        duration = cls.duration_minutes(start, end)
        return cls.calories_for_duration(duration, volume, body_weight)
