import datetime
import logging
import sqlite3
from fastapi import (
    FastAPI,
    HTTPException,
    Header,
    Depends,
    Request,
)
from fastapi.responses import JSONResponse
from config import YamlConfig
from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    SetRepository,
    WeightLogRepository,
    NutritionRepository,
    BadgeRepository,
    NotFoundError,
    WorkoutFinishedError,
)
from gamification_service import GamificationService
from stats_service import StatisticsService
from profile_service import ProfileService

logger = logging.getLogger(__name__)


class LiftAPI:
    """Provides REST endpoints for workout logging and gamification."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.settings = YamlConfig(yaml_path).settings()
        self.db_path = db_path or self.settings.db_path
        timeout = self.settings.db_timeout
        self.users = UserRepository(self.db_path, timeout)
        self.exercises = ExerciseRepository(self.db_path, timeout)
        self.workouts = WorkoutRepository(self.db_path, timeout)
        self.sets = SetRepository(self.db_path, timeout)
        self.weight_logs = WeightLogRepository(self.db_path, timeout)
        self.nutrition = NutritionRepository(self.db_path, timeout)
        self.badges = BadgeRepository(self.db_path, timeout)
        self.gamification = GamificationService(
            self.badges,
            self.workouts,
            self.sets,
            self.users,
            lookback_days=self.settings.streak_lookback_days,
            default_body_weight=self.settings.default_body_weight,
            default_duration_minutes=self.settings.default_duration_minutes,
        )
        self.statistics = StatisticsService(
            self.sets,
            self.workouts,
            self.exercises,
            self.users,
            leaderboard_limit=self.settings.leaderboard_limit,
        )
        self.profiles = ProfileService(
            self.users,
            self.weight_logs,
            self.nutrition,
            self.workouts,
            self.sets,
            self.gamification,
        )
        self.app = FastAPI(
            title="TitanLift API",
            description="REST API for workout logging, records and leaderboards",
        )
        self.app.add_exception_handler(sqlite3.Error, self._storage_failure)
        self._setup_routes()

    @staticmethod
    async def _storage_failure(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error(
            "storage failure on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(status_code=500, content={"detail": "storage failure"})

    def caller_id(self, x_user_id: int | None = Header(None)) -> int:
        """Acting user as supplied by the upstream auth layer."""
        if x_user_id is None:
            raise HTTPException(status_code=401, detail="X-User-Id header required")
        if not self.users.exists(x_user_id):
            raise HTTPException(status_code=404, detail="user not found")
        return x_user_id

    def _setup_routes(self) -> None:
        caller = Depends(self.caller_id)

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.exercises.fetch_all_exercises()
                return {"status": "ok"}
            except sqlite3.Error as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/users")
        def create_user(username: str):
            try:
                uid = self.users.create(username)
                return {"id": uid}
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/exercises")
        def list_exercises():
            return [
                {"id": eid, "name": name, "category": category, "equipment": equipment}
                for eid, name, category, equipment in self.exercises.fetch_all_exercises()
            ]

        @self.app.post("/exercises")
        def add_exercise(name: str, category: str, equipment: str | None = None):
            try:
                eid = self.exercises.add(name, category, equipment)
                return {"id": eid}
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.post("/workouts")
        def create_workout(
            name: str | None = None,
            start_time: str | None = None,
            template_id: int | None = None,
            user_id: int = caller,
        ):
            try:
                start = (
                    datetime.datetime.fromisoformat(start_time)
                    if start_time is not None
                    else None
                )
            except ValueError:
                raise HTTPException(
                    status_code=400,
                    detail="start_time must be an ISO 8601 timestamp",
                )
            wid = self.workouts.create(user_id, name, start, template_id)
            return self.workouts.fetch_detail(wid)

        @self.app.get("/workouts/active")
        def active_workout(user_id: int = caller):
            try:
                return self.statistics.active_workout(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/workouts/{workout_id}/sets")
        def log_set(
            workout_id: int,
            exercise_id: int,
            weight_kg: float,
            reps: int,
            rpe: float | None = None,
            user_id: int = caller,
        ):
            try:
                return self.statistics.log_set(
                    workout_id, user_id, exercise_id, weight_kg, reps, rpe
                )
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except PermissionError as e:
                raise HTTPException(status_code=403, detail=str(e))
            except WorkoutFinishedError as e:
                raise HTTPException(status_code=409, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.post("/workouts/{workout_id}/finish")
        def finish_workout(workout_id: int, user_id: int = caller):
            try:
                return self.gamification.finish_workout(workout_id, user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except PermissionError as e:
                raise HTTPException(status_code=403, detail=str(e))
            except WorkoutFinishedError as e:
                raise HTTPException(status_code=409, detail=str(e))

        @self.app.put("/profile/stats")
        def update_physical_stats(
            height_cm: float | None = None,
            weight_kg: float | None = None,
            sex: str | None = None,
            date_of_birth: str | None = None,
            activity_level: str | None = None,
            user_id: int = caller,
        ):
            try:
                return self.profiles.update_physical_stats(
                    user_id, height_cm, weight_kg, sex, date_of_birth, activity_level
                )
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/profile/nutrition")
        def get_nutrition(user_id: int = caller):
            return self.profiles.nutrition_today(user_id)

        @self.app.post("/profile/nutrition")
        def log_nutrition(
            calories_in: int,
            protein_g: int | None = None,
            carbs_g: int | None = None,
            fats_g: int | None = None,
            user_id: int = caller,
        ):
            try:
                return self.profiles.log_nutrition(
                    user_id, calories_in, protein_g, carbs_g, fats_g
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/profile/{user_id}")
        def get_profile(user_id: int):
            try:
                return self.profiles.full_profile(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/stats")
        def get_physical_stats(user_id: int):
            try:
                return self.profiles.physical_stats(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/weight")
        def get_weight_history(user_id: int):
            try:
                return self.profiles.weight_history(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/history")
        def get_workout_history(user_id: int):
            try:
                return self.statistics.workout_history(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/badges")
        def get_badges(user_id: int):
            try:
                return self.gamification.user_badges(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/trophies")
        def get_trophies(user_id: int):
            try:
                return self.gamification.trophy_case(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get("/profile/{user_id}/streak")
        def get_streak(user_id: int):
            try:
                self.users.fetch_detail(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return self.gamification.workout_streak(user_id)

        @self.app.get("/leaderboard")
        def get_leaderboard(period: str | None = None, category: str | None = None):
            return self.statistics.leaderboard(period, category)


def create_app(yaml_path: str = "settings.yaml"):
    return LiftAPI(yaml_path=yaml_path).app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app())
