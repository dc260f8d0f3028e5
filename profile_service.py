from __future__ import annotations
import datetime
import logging
from db import (
    NutritionRepository,
    SetRepository,
    UserRepository,
    WeightLogRepository,
    WorkoutRepository,
    utc_now,
)
from gamification_service import GamificationService
from algorithms import BodyMetrics

logger = logging.getLogger(__name__)


class ProfileService:
    """Physical stats, body weight history, nutrition and the profile summary."""

    def __init__(
        self,
        user_repo: UserRepository,
        weight_repo: WeightLogRepository,
        nutrition_repo: NutritionRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        gamification: GamificationService,
    ) -> None:
        self.users = user_repo
        self.weights = weight_repo
        self.nutrition = nutrition_repo
        self.workouts = workout_repo
        self.sets = set_repo
        self.gamification = gamification

    @staticmethod
    def _parse_date(value: str | None) -> datetime.date | None:
        if value is None:
            return None
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            raise ValueError("date must be in YYYY-MM-DD format")

    def physical_stats(self, user_id: int, today: datetime.date | None = None) -> dict:
        user = self.users.fetch_detail(user_id)
        metrics = BodyMetrics.compute(
            user["height_cm"],
            user["current_weight_kg"],
            user["sex"],
            self._parse_date(user["date_of_birth"]),
            user["activity_level"],
            today or utc_now().date(),
        )
        return {
            "height_cm": user["height_cm"],
            "current_weight_kg": user["current_weight_kg"],
            "sex": user["sex"],
            "date_of_birth": user["date_of_birth"],
            "activity_level": user["activity_level"],
            **metrics,
        }

    def update_physical_stats(
        self,
        user_id: int,
        height_cm: float | None = None,
        weight_kg: float | None = None,
        sex: str | None = None,
        date_of_birth: str | None = None,
        activity_level: str | None = None,
        now: datetime.datetime | None = None,
    ) -> dict:
        """Update supplied fields and append a weight log in one transaction."""
        if height_cm is not None and height_cm <= 0:
            raise ValueError("height must be positive")
        if weight_kg is not None and weight_kg <= 0:
            raise ValueError("weight must be positive")
        self._parse_date(date_of_birth)
        now = now or utc_now()
        with self.users.transaction() as conn:
            self.users.fetch_detail(user_id, conn)
            self.users.update_physical(
                user_id,
                conn,
                height_cm=height_cm,
                weight_kg=weight_kg,
                sex=sex,
                date_of_birth=date_of_birth,
                activity_level=activity_level,
            )
            if weight_kg is not None:
                self.weights.log(user_id, weight_kg, now, conn)
        logger.info("updated physical stats for user %s", user_id)
        return self.physical_stats(user_id, now.date())

    def weight_history(self, user_id: int) -> list[dict]:
        self.users.fetch_detail(user_id)
        return [
            {"date": logged, "weight_kg": weight}
            for logged, weight in self.weights.fetch_history(user_id)
        ]

    def log_nutrition(
        self,
        user_id: int,
        calories_in: int,
        protein_g: int | None = None,
        carbs_g: int | None = None,
        fats_g: int | None = None,
        today: datetime.date | None = None,
    ) -> dict:
        self.users.fetch_detail(user_id)
        day = (today or utc_now().date()).isoformat()
        return self.nutrition.log(user_id, day, calories_in, protein_g, carbs_g, fats_g)

    def nutrition_today(self, user_id: int, today: datetime.date | None = None) -> dict | None:
        self.users.fetch_detail(user_id)
        day = (today or utc_now().date()).isoformat()
        return self.nutrition.fetch_for_date(user_id, day)

    def full_profile(self, user_id: int, today: datetime.date | None = None) -> dict:
        """Totals, recent activity and streaks for a user."""
        user = self.users.fetch_detail(user_id)
        today = today or utc_now().date()
        streak = self.gamification.workout_streak(user_id, today)
        return {
            "id": user["id"],
            "username": user["username"],
            "join_date": user["created_at"],
            "total_workouts": self.workouts.count_finished(user_id),
            "total_volume_kg": self.sets.total_volume(user_id),
            "activity_log": self.gamification.activity_log(user_id, today),
            "current_streak": streak["current"],
            "max_streak": streak["max"],
        }
