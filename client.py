import requests
from typing import Optional

class LiftClient:
    """Simple REST client for the TitanLift API acting as one user."""

    def __init__(
        self,
        user_id: int,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"X-User-Id": str(user_id)}
        self.timeout = timeout

    def _post(self, path: str, params: dict) -> dict:
        resp = requests.post(
            f"{self.base_url}{path}",
            params={k: v for k, v in params.items() if v is not None},
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def _get(self, path: str, params: Optional[dict] = None):
        resp = requests.get(
            f"{self.base_url}{path}",
            params=params,
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def start_workout(self, name: Optional[str] = None) -> int:
        return self._post("/workouts", {"name": name})["id"]

    def log_set(
        self,
        workout_id: int,
        exercise_id: int,
        weight_kg: float,
        reps: int,
        rpe: Optional[float] = None,
    ) -> dict:
        return self._post(
            f"/workouts/{workout_id}/sets",
            {"exercise_id": exercise_id, "weight_kg": weight_kg, "reps": reps, "rpe": rpe},
        )

    def finish_workout(self, workout_id: int) -> dict:
        return self._post(f"/workouts/{workout_id}/finish", {})

    def profile(self, user_id: int) -> dict:
        return self._get(f"/profile/{user_id}")

    def leaderboard(self, period: Optional[str] = None, category: Optional[str] = None):
        params = {k: v for k, v in {"period": period, "category": category}.items() if v}
        return self._get("/leaderboard", params)
