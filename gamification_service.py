import datetime
import logging
import sqlite3
from db import (
    BadgeRepository,
    SetRepository,
    UserRepository,
    WorkoutRepository,
    WorkoutFinishedError,
    as_utc,
    parse_timestamp,
    to_timestamp,
    utc_now,
)
from algorithms import BadgeRules, EnergyEstimator, MathTools, StreakCalculator

logger = logging.getLogger(__name__)


class GamificationService:
    """Badges, streaks and the finish-workout unit of work."""

    def __init__(
        self,
        badge_repo: BadgeRepository,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        user_repo: UserRepository,
        *,
        lookback_days: int = 365,
        default_body_weight: float = EnergyEstimator.DEFAULT_BODY_WEIGHT,
        default_duration_minutes: int = EnergyEstimator.DEFAULT_DURATION_MINUTES,
    ) -> None:
        self.badges = badge_repo
        self.workouts = workout_repo
        self.sets = set_repo
        self.users = user_repo
        self.lookback_days = lookback_days
        self.default_body_weight = default_body_weight
        self.default_duration_minutes = default_duration_minutes

    def finish_workout(
        self, workout_id: int, caller_id: int, now: datetime.datetime | None = None
    ) -> dict:
        """Close a workout, estimate calories and award badges atomically."""
        now = as_utc(now or utc_now())
        with self.workouts.transaction() as conn:
            workout = self.workouts.fetch_detail(workout_id, conn)
            if workout["user_id"] != caller_id:
                raise PermissionError("workout belongs to another user")
            if workout["end_time"] is not None:
                raise WorkoutFinishedError("workout already finished")
            sets = self.sets.fetch_for_workout(workout_id, conn)
            volume = MathTools.volume(sets)
            body_weight = self.users.current_weight(workout["user_id"], conn)
            if body_weight is None:
                body_weight = self.default_body_weight
            duration = EnergyEstimator.duration_minutes(
                parse_timestamp(workout["start_time"]),
                now,
                default=self.default_duration_minutes,
            )
            calories = EnergyEstimator.calories_for_duration(duration, volume, body_weight)
            earned = self.award_badges(
                workout["user_id"],
                workout_id,
                BadgeRules.determine(volume, duration, len(sets)),
                now,
                conn,
            )
            self.workouts.finish(workout_id, now, calories, conn)
        logger.info(
            "finished workout %s: %d min, %.1f kg, %d kcal, badges=%s",
            workout_id,
            duration,
            volume,
            calories,
            earned,
        )
        return {
            "id": workout_id,
            "end_time": to_timestamp(now),
            "duration_minutes": duration,
            "total_volume_kg": volume,
            "calories_burned": calories,
            "badges": earned,
        }

    def award_badges(
        self,
        user_id: int,
        workout_id: int,
        names: list[str],
        now: datetime.datetime,
        conn: sqlite3.Connection,
    ) -> list[str]:
        """Persist ``names`` for a workout; return only the awards that were new."""
        return [
            name
            for name in names
            if self.badges.award(user_id, workout_id, name, now, conn)
        ]

    def user_badges(self, user_id: int) -> list[dict]:
        self.users.fetch_detail(user_id)
        return self.badges.fetch_for_user(user_id)

    def trophy_case(self, user_id: int) -> list[dict]:
        self.users.fetch_detail(user_id)
        return self.badges.grouped(user_id)

    def activity_log(
        self, user_id: int, today: datetime.date | None = None
    ) -> list[dict]:
        """Per-day volume over the last ``lookback_days`` days, today included."""
        today = today or utc_now().date()
        start = datetime.datetime.combine(
            today - datetime.timedelta(days=self.lookback_days - 1),
            datetime.time.min,
            tzinfo=datetime.timezone.utc,
        )
        return [
            {"date": day, "volume_kg": vol}
            for day, vol in self.sets.daily_volume(user_id, start)
        ]

    def workout_streak(
        self, user_id: int, today: datetime.date | None = None
    ) -> dict[str, int]:
        """Return current and record streaks of consecutive training days."""
        today = today or utc_now().date()
        days = [
            datetime.date.fromisoformat(entry["date"])
            for entry in self.activity_log(user_id, today)
        ]
        return StreakCalculator.compute(days, today)
