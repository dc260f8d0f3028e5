from __future__ import annotations
import datetime
import logging
from db import (
    ExerciseRepository,
    NotFoundError,
    SetRepository,
    UserRepository,
    WorkoutRepository,
    WorkoutFinishedError,
    utc_now,
)
from algorithms import (
    Leaderboard,
    LeaderboardFilter,
    PersonalRecordEvaluator,
    TimeWindow,
)

logger = logging.getLogger(__name__)


class StatisticsService:
    """Set logging with personal-record detection, leaderboards and history."""

    def __init__(
        self,
        set_repo: SetRepository,
        workout_repo: WorkoutRepository,
        exercise_repo: ExerciseRepository,
        user_repo: UserRepository,
        *,
        leaderboard_limit: int = Leaderboard.DEFAULT_LIMIT,
    ) -> None:
        self.sets = set_repo
        self.workouts = workout_repo
        self.exercises = exercise_repo
        self.users = user_repo
        self.leaderboard_limit = leaderboard_limit

    def log_set(
        self,
        workout_id: int,
        caller_id: int,
        exercise_id: int,
        weight_kg: float,
        reps: int,
        rpe: float | None = None,
        now: datetime.datetime | None = None,
    ) -> dict:
        """Insert a set and flag it against the caller's prior history.

        History is read and the set inserted under one write lock, so two
        concurrent logs for the same exercise cannot share a stale baseline.
        """
        with self.sets.transaction() as conn:
            workout = self.workouts.fetch_detail(workout_id, conn)
            if workout["user_id"] != caller_id:
                raise PermissionError("workout belongs to another user")
            if workout["end_time"] is not None:
                raise WorkoutFinishedError("workout already finished")
            if not self.exercises.exists(exercise_id, conn):
                raise NotFoundError("exercise not found")
            history = self.sets.fetch_history(caller_id, exercise_id, conn)
            result = PersonalRecordEvaluator.evaluate(weight_kg, reps, history)
            entry = self.sets.add(
                workout_id, exercise_id, weight_kg, reps, rpe, now or utc_now(), conn
            )
        if result.is_new_1rm or result.is_volume_pr:
            logger.info(
                "user %s set a record on exercise %s: %.1f kg x %d (1rm=%s, volume=%s)",
                caller_id,
                exercise_id,
                weight_kg,
                reps,
                result.is_new_1rm,
                result.is_volume_pr,
            )
        return {
            "set": entry,
            "is_new_1rm": result.is_new_1rm,
            "is_volume_pr": result.is_volume_pr,
        }

    def leaderboard(
        self,
        period: str | None = None,
        category: str | None = None,
        now: datetime.datetime | None = None,
    ) -> list[dict]:
        filters = LeaderboardFilter(TimeWindow.parse(period), category or None)
        volumes = self.sets.volume_by_user(filters, now or utc_now())
        ranked = Leaderboard.rank(volumes, self.leaderboard_limit)
        for entry in ranked:
            entry["period"] = filters.window.value
            entry["category"] = filters.category
        return ranked

    def workout_history(self, user_id: int, limit: int = 20) -> list[dict]:
        self.users.fetch_detail(user_id)
        return self.workouts.fetch_history(user_id, limit)

    def active_workout(self, user_id: int) -> dict:
        workout = self.workouts.fetch_active(user_id)
        if workout is None:
            raise NotFoundError("no active workout")
        return workout
