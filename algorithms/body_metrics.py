"""Basal and total daily energy expenditure from stored physical attributes."""

from __future__ import annotations

import datetime

from .math_tools import MathTools


class BodyMetrics:
    """Mifflin-St Jeor BMR and activity-scaled TDEE."""

    ACTIVITY_MULTIPLIERS: dict[str, float] = {
        "sedentary": 1.2,
        "light": 1.375,
        "moderate": 1.55,
        "active": 1.725,
        "athlete": 1.9,
    }
    DEFAULT_MULTIPLIER: float = 1.2
    MALE_OFFSET: float = 5.0
    FEMALE_OFFSET: float = -161.0

    @staticmethod
    def age_years(date_of_birth: datetime.date, today: datetime.date) -> int:
        """Whole years as days / 365.

        Leap days are ignored, so the result can run one day early around
        birthdays. Truncates toward zero.
        """
        return int((today - date_of_birth).days / 365)

    @classmethod
    def sex_offset(cls, sex: str) -> float:
        # anything other than "male" takes the female branch
        return cls.MALE_OFFSET if sex == "male" else cls.FEMALE_OFFSET

    @classmethod
    def activity_multiplier(cls, activity_level: str) -> float:
        return cls.ACTIVITY_MULTIPLIERS.get(activity_level, cls.DEFAULT_MULTIPLIER)

    @classmethod
    def bmr(
        cls,
        weight_kg: float | None,
        height_cm: float | None,
        age: int | None,
        sex: str | None,
    ) -> int | None:
        """Return BMR in kcal/day or ``None`` when an input is missing."""
        if weight_kg is None or height_cm is None or age is None or sex is None:
            return None
        value = 10.0 * weight_kg + 6.25 * height_cm - 5.0 * age + cls.sex_offset(sex)
        return MathTools.truncate(value)

    @classmethod
    def tdee(cls, bmr: int | None, activity_level: str | None) -> int | None:
        """Return TDEE in kcal/day or ``None`` without BMR or activity level."""
        if bmr is None or activity_level is None:
            return None
        return MathTools.truncate(bmr * cls.activity_multiplier(activity_level))

    @classmethod
    def compute(
        cls,
        height_cm: float | None,
        weight_kg: float | None,
        sex: str | None,
        date_of_birth: datetime.date | None,
        activity_level: str | None,
        today: datetime.date | None = None,
    ) -> dict[str, int | None]:
        """Return ``{"bmr": ..., "tdee": ...}`` for a physical profile."""
        today = today or datetime.date.today()
        age = cls.age_years(date_of_birth, today) if date_of_birth else None
        bmr = cls.bmr(weight_kg, height_cm, age, sex)
        return {"bmr": bmr, "tdee": cls.tdee(bmr, activity_level)}
